"""
ABI fragment of the FusionPayment contract: only the functions this service calls.
"""

PAYMENT_PARAMS_COMPONENTS = [
    {"name": "fromFusionPayId", "type": "string"},
    {"name": "toFusionPayId", "type": "string"},
    {"name": "amount", "type": "uint256"},
    {"name": "fromCurrency", "type": "string"},
    {"name": "toCurrency", "type": "string"},
    {"name": "fxRate", "type": "uint256"},
    {"name": "fxRoute", "type": "string[]"},
]

FUSION_PAYMENT_ABI = [
    {
        "type": "function",
        "name": "registerUser",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "fusionPayId", "type": "string"},
            {"name": "userAddress", "type": "address"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "processPayment",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "txId", "type": "string"},
            {
                "name": "params",
                "type": "tuple",
                "internalType": "struct FusionPayment.PaymentParams",
                "components": PAYMENT_PARAMS_COMPONENTS,
            },
        ],
        "outputs": [],
    },
]
