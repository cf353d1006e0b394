"""External data sources: Solana RPC, the launch log feed, DexScreener."""
