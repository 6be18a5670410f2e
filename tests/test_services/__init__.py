"""
Test Services Package
Tests for the service layer (access, ledger, caregivers, medications)
"""
