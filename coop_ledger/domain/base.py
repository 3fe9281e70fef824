from sqlalchemy import BigInteger, Integer
from sqlmodel import SQLModel

# SQLite only auto-assigns INTEGER primary keys
IdType = BigInteger().with_variant(Integer(), "sqlite")


class BaseModel(SQLModel):
    pass
