"""
数据获取适配器：根据 token 地址和指标类型解析出 item 的展示数据。

行情（symbol / 图标 / 价格）来自 DexScreener 搜索接口，
交易次数和盈亏百分比来自按钱包地址查询的后端接口。
"""

import logging
from typing import Any, Optional

import httpx

from flexol.config_loader import SourcesConfig
from flexol.errors import DataUnavailable, NoIdentity
from flexol.models import ItemKind, ItemPayload
from flexol.parser import FieldMapping, extract_fields

logger = logging.getLogger(__name__)

PAIR_FIELDS = [
    FieldMapping(name="base_address", expr="pairs[0].baseToken.address"),
    FieldMapping(name="base_symbol", expr="pairs[0].baseToken.symbol"),
    FieldMapping(name="quote_address", expr="pairs[0].quoteToken.address"),
    FieldMapping(name="quote_symbol", expr="pairs[0].quoteToken.symbol"),
    FieldMapping(name="image_url", expr="pairs[0].info.imageUrl"),
    FieldMapping(name="price_native", expr="pairs[0].priceNative"),
]

TRADE_COUNT_FIELDS = [FieldMapping(name="value", expr="tradeCount")]
PNL_FIELDS = [FieldMapping(name="value", expr="pnlPercentage")]


class DataAcquisitionAdapter:
    """
    负责调用外部数据源。
    所有失败都转换为 DataUnavailable，缺少钱包地址时在发请求前抛出 NoIdentity。
    """

    def __init__(self, config: SourcesConfig, client: httpx.AsyncClient | None = None):
        self._config = config
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout)
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def resolve(self, token_address: str, kind: ItemKind, owner: Optional[str] = None) -> ItemPayload:
        token = token_address.strip()
        if kind.requires_identity and not owner:
            raise NoIdentity(kind.value)
        if not token:
            raise DataUnavailable(token_address, "Empty token address")

        pair = await self._fetch_pair(token)
        symbol = pair["quote_symbol"] if pair["quote_address"] == token else pair["base_symbol"]
        if not symbol:
            raise DataUnavailable(token, "Pair has no token symbol")

        if kind == ItemKind.WATCH_PRICE:
            value = pair["price_native"]
        elif kind == ItemKind.TRADE_COUNT:
            value = await self._post_metric(
                self._config.trade_count_url,
                {"walletAddress": owner, "tokenMint": token},
                TRADE_COUNT_FIELDS,
                token,
            )
        else:
            value = await self._post_metric(
                self._config.pnl_url,
                {"walletAddress2": owner, "tokenMint2": token},
                PNL_FIELDS,
                token,
            )

        if value is None:
            raise DataUnavailable(token, f"No {kind.value} value in response")

        logger.info(f"[{token}] 已解析 {kind.value}: {symbol} = {value}")
        return ItemPayload(
            symbol=symbol,
            value=value,
            image_url=pair["image_url"],
            token_address=token,
        )

    async def _fetch_pair(self, token: str) -> dict[str, Any]:
        data = await self._request("GET", self._config.search_url, token, params={"q": token})
        if not isinstance(data, dict) or not data.get("pairs"):
            raise DataUnavailable(token, "No market pair found")
        return extract_fields(data, PAIR_FIELDS)

    async def _post_metric(self, url: str, body: dict, fields: list[FieldMapping], token: str) -> Optional[str]:
        data = await self._request("POST", url, token, json=body)
        if not isinstance(data, dict):
            raise DataUnavailable(token, f"Unexpected response from {url}")
        return extract_fields(data, fields)["value"]

    async def _request(self, method: str, url: str, token: str, **kwargs) -> Any:
        try:
            response = await self._get_client().request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"[{token}] {method} {url} -> {e.response.status_code}")
            raise DataUnavailable(token, f"HTTP {e.response.status_code} from {url}") from e
        except httpx.HTTPError as e:
            logger.error(f"[{token}] {method} {url} failed: {e}")
            raise DataUnavailable(token, f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise DataUnavailable(token, f"Malformed response from {url}") from e
