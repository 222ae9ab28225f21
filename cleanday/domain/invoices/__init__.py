"""Invoices domain: invoices, recorded payments and invoice PDFs"""
