"""
Minimal ABIs for the on-chain reads and the settlement call.

Only the functions and events the engine touches are listed.
"""


def _fn(name, inputs, outputs, mutability="view"):
    return {
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "name": name,
        "outputs": [{"name": n, "type": t} for n, t in outputs],
        "stateMutability": mutability,
        "type": "function",
    }


def _event(name, fields):
    return {
        "anonymous": False,
        "inputs": [
            {"indexed": indexed, "name": n, "type": t} for n, t, indexed in fields
        ],
        "name": name,
        "type": "event",
    }


ERC20_ABI = [
    _fn("symbol", [], [("", "string")]),
    _fn("decimals", [], [("", "uint8")]),
    _fn("balanceOf", [("account", "address")], [("", "uint256")]),
]

UNISWAP_V2_PAIR_ABI = [
    _fn("token0", [], [("", "address")]),
    _fn("token1", [], [("", "address")]),
    _fn(
        "getReserves",
        [],
        [
            ("reserve0", "uint112"),
            ("reserve1", "uint112"),
            ("blockTimestampLast", "uint32"),
        ],
    ),
    _event(
        "Swap",
        [
            ("sender", "address", True),
            ("amount0In", "uint256", False),
            ("amount1In", "uint256", False),
            ("amount0Out", "uint256", False),
            ("amount1Out", "uint256", False),
            ("to", "address", True),
        ],
    ),
]

UNISWAP_V2_ROUTER_ABI = [
    _fn(
        "getAmountsOut",
        [("amountIn", "uint256"), ("path", "address[]")],
        [("amounts", "uint256[]")],
    ),
    _fn(
        "getAmountsIn",
        [("amountOut", "uint256"), ("path", "address[]")],
        [("amounts", "uint256[]")],
    ),
]

LB_PAIR_ABI = [
    _fn("getActiveId", [], [("activeId", "uint24")]),
    _fn("getBinStep", [], [("", "uint16")]),
    _fn("getTokenX", [], [("tokenX", "address")]),
    _fn("getTokenY", [], [("tokenY", "address")]),
    _fn("getPriceFromId", [("id", "uint24")], [("price", "uint256")]),
    _fn(
        "getBin",
        [("id", "uint24")],
        [("binReserveX", "uint128"), ("binReserveY", "uint128")],
    ),
    _event(
        "Swap",
        [
            ("sender", "address", True),
            ("to", "address", True),
            ("id", "uint24", False),
            ("amountsIn", "bytes32", False),
            ("amountsOut", "bytes32", False),
            ("volatilityAccumulator", "uint24", False),
            ("totalFees", "bytes32", False),
            ("protocolFees", "bytes32", False),
        ],
    ),
]

LB_ROUTER_ABI = [
    _fn(
        "getSwapIn",
        [("lbPair", "address"), ("amountOut", "uint128"), ("swapForY", "bool")],
        [("amountIn", "uint128"), ("amountOutLeft", "uint128"), ("fee", "uint128")],
    ),
    _fn(
        "getSwapOut",
        [("lbPair", "address"), ("amountIn", "uint128"), ("swapForY", "bool")],
        [("amountInLeft", "uint128"), ("amountOut", "uint128"), ("fee", "uint128")],
    ),
]

ARBITRAGE_ABI = [
    _fn(
        "executeTrade",
        [
            ("_startOnVenueA", "bool"),
            ("_token0", "address"),
            ("_token1", "address"),
            ("_flashAmount", "uint256"),
        ],
        [],
        mutability="nonpayable",
    ),
]
