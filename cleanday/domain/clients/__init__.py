"""Clients domain: client records, service addresses and credit ledger"""
