"""Entitlement ledger: package quota consumption per rolling cycle"""
