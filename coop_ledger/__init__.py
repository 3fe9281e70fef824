"""Member credit ledger and settlement engine"""
