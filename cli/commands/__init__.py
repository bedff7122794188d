"""
NFT Freeze CLI Commands Package

Command groups for the NFT Freeze CLI.
"""

__all__ = ['network', 'deploy', 'nft', 'freeze']
