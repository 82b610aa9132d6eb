# https://docs.uniswap.org/contracts/v3/reference/deployments
_MAINNET_DEPLOYMENT: dict[str, str] = {
    "factory": "0x1F98431c8aD98523631AE4a59f267346ea31F984",
    "quoter": "0xb27308f9F90D607463bb33eA1BeBb41C27CE5AB6",
    "position_manager": "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
}

UNISWAP_V3_DEPLOYMENTS: dict[int, dict[str, str]] = {
    1: _MAINNET_DEPLOYMENT,
    5: _MAINNET_DEPLOYMENT,
    10: _MAINNET_DEPLOYMENT,
    42161: _MAINNET_DEPLOYMENT,
}

UNISWAP_V3_POOL_INIT_CODE_HASH = (
    "0xe34f199b19b2b4f47f68442619d555527d244f78a3297ea89325f843f87b8b54"
)
