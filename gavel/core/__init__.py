"""Core protocol: ledger runtime, auction program, persistence"""
