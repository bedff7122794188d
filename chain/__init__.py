"""
NFT Freeze - Local Chain Runtime

Accounts, contracts, atomic transactions and upgradeable proxies executed
in-process. Import submodules directly (chain.network, chain.proxy).
"""
