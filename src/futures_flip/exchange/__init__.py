from futures_flip.exchange.binance_futures import BinanceFuturesClient, ExchangeError, NetworkError

__all__ = ["BinanceFuturesClient", "ExchangeError", "NetworkError"]
