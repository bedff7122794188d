"""
NFT Freeze - Ledger Storage

Storage schema models, file-backed snapshot persistence and schema migrations.
"""
