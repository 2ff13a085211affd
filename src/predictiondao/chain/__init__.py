from predictiondao.chain.client import ChainClient, ChainPrediction

__all__ = ["ChainClient", "ChainPrediction"]
