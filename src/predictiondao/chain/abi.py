"""Minimal ABI of the PredictionDAO contract used by the chain client."""

_PREDICTION_TUPLE = {
    "internalType": "struct PredictionDAO.Prediction[]",
    "name": "",
    "type": "tuple[]",
    "components": [
        {"internalType": "uint256", "name": "id", "type": "uint256"},
        {"internalType": "address", "name": "creator", "type": "address"},
        {"internalType": "string", "name": "title", "type": "string"},
        {"internalType": "string", "name": "description", "type": "string"},
        {"internalType": "string", "name": "category", "type": "string"},
        {"internalType": "uint256", "name": "endTime", "type": "uint256"},
        {"internalType": "bool", "name": "isActive", "type": "bool"},
        {"internalType": "bool", "name": "isApproved", "type": "bool"},
        {"internalType": "uint256", "name": "totalVotes", "type": "uint256"},
        {"internalType": "uint256", "name": "yesVotes", "type": "uint256"},
        {"internalType": "uint256", "name": "noVotes", "type": "uint256"},
        {"internalType": "uint256", "name": "createdAt", "type": "uint256"},
    ],
}

PREDICTION_DAO_ABI = [
    {
        "inputs": [
            {"internalType": "string", "name": "_title", "type": "string"},
            {"internalType": "string", "name": "_description", "type": "string"},
            {"internalType": "string", "name": "_category", "type": "string"},
            {"internalType": "uint256", "name": "_votingPeriod", "type": "uint256"},
        ],
        "name": "createPrediction",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "_predictionId", "type": "uint256"},
            {"internalType": "bool", "name": "_support", "type": "bool"},
        ],
        "name": "vote",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getActivePredictions",
        "outputs": [_PREDICTION_TUPLE],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getApprovedPredictions",
        "outputs": [_PREDICTION_TUPLE],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getPredictionCount",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "uint256", "name": "predictionId", "type": "uint256"},
            {"indexed": True, "internalType": "address", "name": "creator", "type": "address"},
            {"indexed": False, "internalType": "string", "name": "title", "type": "string"},
        ],
        "name": "PredictionCreated",
        "type": "event",
    },
]
