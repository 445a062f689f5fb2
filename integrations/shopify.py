"""
Shopify Admin GraphQL client.

Every call returns a PlatformResult instead of raising, so the import loop
can count a rejected mutation as a per-record failure and move on.
"""

from dataclasses import dataclass
from typing import Any, Optional
import requests
import structlog

from config.settings import settings
from exceptions import RemoteMutationError
from models.catalog import CanonicalVariant, RemoteCatalogEntry, RemoteVariant

logger = structlog.get_logger(__name__)

DEFAULT_OPTION = {"optionName": "Title", "name": "Default Title"}


@dataclass
class PlatformResult:
    """Outcome of one query or mutation."""
    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "PlatformResult":
        return cls(success=False, error=error)


# ===================
# QUERIES
# ===================

PRODUCTS_QUERY = """
query findProducts($query: String!) {
  products(first: 10, query: $query) {
    edges {
      node {
        id
        title
        tags
        variants(first: 100) {
          edges { node { id sku barcode inventoryItem { id } } }
        }
      }
    }
  }
}
"""

VARIANT_BY_BARCODE_QUERY = """
query variantByBarcode($query: String!) {
  productVariants(first: 1, query: $query) {
    edges { node { id sku barcode inventoryItem { id } product { id } } }
  }
}
"""

PRODUCT_VARIANTS_QUERY = """
query productVariants($id: ID!) {
  product(id: $id) {
    variants(first: 100) {
      edges { node { id sku barcode inventoryItem { id } } }
    }
  }
}
"""

LOCATIONS_QUERY = """
query shopLocations {
  locations(first: 50) {
    edges { node { id isActive } }
  }
}
"""

PUBLICATIONS_QUERY = """
query publications {
  publications(first: 10) {
    edges { node { id name } }
  }
}
"""

# ===================
# MUTATIONS
# ===================

PRODUCT_CREATE = """
mutation productCreate($product: ProductCreateInput!) {
  productCreate(product: $product) {
    product { id }
    userErrors { field message }
  }
}
"""

PRODUCT_UPDATE = """
mutation productUpdate($product: ProductUpdateInput!) {
  productUpdate(product: $product) {
    product { id }
    userErrors { field message }
  }
}
"""

VARIANTS_BULK_CREATE = """
mutation productVariantsBulkCreate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkCreate(productId: $productId, variants: $variants, strategy: REMOVE_STANDALONE_VARIANT) {
    productVariants { id sku barcode inventoryItem { id } }
    userErrors { field message }
  }
}
"""

VARIANTS_BULK_UPDATE = """
mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkUpdate(productId: $productId, variants: $variants) {
    productVariants { id sku barcode inventoryItem { id } }
    userErrors { field message }
  }
}
"""

CREATE_MEDIA = """
mutation productCreateMedia($productId: ID!, $media: [CreateMediaInput!]!) {
  productCreateMedia(productId: $productId, media: $media) {
    media { alt }
    mediaUserErrors { field message }
  }
}
"""

INVENTORY_ACTIVATE = """
mutation inventoryActivate($inventoryItemId: ID!, $locationId: ID!) {
  inventoryActivate(inventoryItemId: $inventoryItemId, locationId: $locationId) {
    inventoryLevel { id }
    userErrors { field message }
  }
}
"""

INVENTORY_SET_ON_HAND = """
mutation inventorySetOnHandQuantities($input: InventorySetOnHandQuantitiesInput!) {
  inventorySetOnHandQuantities(input: $input) {
    userErrors { field message }
  }
}
"""

PUBLISHABLE_PUBLISH = """
mutation publishablePublish($id: ID!, $input: [PublicationInput!]!) {
  publishablePublish(id: $id, input: $input) {
    userErrors { field message }
  }
}
"""


def _quote(value: str) -> str:
    """Quote a value for Shopify search syntax."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _edges(connection: Optional[dict]) -> list[dict]:
    if not connection:
        return []
    return [edge["node"] for edge in connection.get("edges", [])]


def _to_variant(node: dict) -> RemoteVariant:
    return RemoteVariant(
        id=node["id"],
        sku=node.get("sku") or None,
        barcode=node.get("barcode") or None,
        inventory_item_id=(node.get("inventoryItem") or {}).get("id"),
    )


def _to_product(node: dict) -> RemoteCatalogEntry:
    return RemoteCatalogEntry(
        id=node["id"],
        title=node.get("title") or "",
        tags=node.get("tags") or [],
        variants=[_to_variant(v) for v in _edges(node.get("variants"))],
    )


def variant_input(variant: CanonicalVariant, variant_id: Optional[str] = None) -> dict:
    """Build a ProductVariantsBulkInput from a canonical variant."""
    data: dict[str, Any] = {}
    if variant_id:
        data["id"] = variant_id
    else:
        data["optionValues"] = [DEFAULT_OPTION]

    if variant.price is not None:
        data["price"] = str(variant.price)
    if variant.compare_at_price is not None:
        data["compareAtPrice"] = str(variant.compare_at_price)
    if variant.barcode:
        data["barcode"] = variant.barcode

    inventory_item: dict[str, Any] = {"tracked": True}
    if variant.sku:
        inventory_item["sku"] = variant.sku
    data["inventoryItem"] = inventory_item

    return data


class ShopifyClient:
    """
    Thin wrapper around the Admin GraphQL endpoint.

    Usage:
        client = get_shopify_client()
        result = client.create_product({"title": "Chair", "status": "DRAFT"})
        if result.success:
            product_id = result.data
    """

    def __init__(
        self,
        store_domain: Optional[str] = None,
        access_token: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[int] = None,
        batch_size: Optional[int] = None,
        session: Optional[requests.Session] = None
    ):
        store_domain = store_domain or settings.shopify_store_domain
        api_version = api_version or settings.shopify_api_version
        self.endpoint = f"https://{store_domain}/admin/api/{api_version}/graphql.json"
        self.access_token = access_token or settings.shopify_access_token
        self.timeout = timeout or settings.shopify_timeout_seconds
        self.batch_size = batch_size or settings.inventory_batch_size
        self.session = session or requests.Session()
        self._location_ids: Optional[list[str]] = None

    # ===================
    # TRANSPORT
    # ===================

    def execute(self, query: str, variables: Optional[dict] = None) -> PlatformResult:
        """Run a GraphQL document, folding transport and top-level errors into the result."""
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.access_token or "",
        }

        try:
            response = self.session.post(
                self.endpoint,
                json={"query": query, "variables": variables or {}},
                headers=headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()

        except requests.exceptions.RequestException as e:
            logger.error("shopify_request_failed", error=str(e))
            return PlatformResult.failed(f"Request failed: {str(e)}")
        except ValueError as e:
            logger.error("shopify_invalid_response", error=str(e))
            return PlatformResult.failed("Invalid JSON response")

        if body.get("errors"):
            messages = "; ".join(err.get("message", "unknown") for err in body["errors"])
            logger.warning("shopify_graphql_errors", errors=messages)
            return PlatformResult.failed(messages)

        return PlatformResult(success=True, data=body.get("data") or {})

    def _mutate(self, query: str, variables: dict, root: str, errors_key: str = "userErrors") -> PlatformResult:
        """Run a mutation and fail on userErrors."""
        result = self.execute(query, variables)
        if not result.success:
            return result

        payload = result.data.get(root) or {}
        user_errors = payload.get(errors_key) or []
        if user_errors:
            messages = "; ".join(e.get("message", "unknown") for e in user_errors)
            logger.warning("shopify_user_errors", mutation=root, errors=messages)
            return PlatformResult.failed(messages)

        return PlatformResult(success=True, data=payload)

    # ===================
    # PRODUCT LOOKUP
    # ===================

    def query_product_by_sku(self, sku: str) -> PlatformResult:
        """Candidate products with a variant carrying this SKU."""
        result = self.execute(PRODUCTS_QUERY, {"query": f"sku:{_quote(sku)}"})
        if not result.success:
            return result
        return PlatformResult(success=True, data=[_to_product(n) for n in _edges(result.data.get("products"))])

    def query_product_by_title(self, title: str) -> PlatformResult:
        """Candidate products whose title matches the search."""
        result = self.execute(PRODUCTS_QUERY, {"query": f"title:{_quote(title)}"})
        if not result.success:
            return result
        return PlatformResult(success=True, data=[_to_product(n) for n in _edges(result.data.get("products"))])

    def query_inventory_item_by_barcode(self, barcode: str) -> PlatformResult:
        """
        Find the variant carrying a barcode.

        Returns:
            PlatformResult with data {variant_id, inventory_item_id, product_id}
            or data None when no variant matches
        """
        result = self.execute(VARIANT_BY_BARCODE_QUERY, {"query": f"barcode:{_quote(barcode)}"})
        if not result.success:
            return result

        nodes = _edges(result.data.get("productVariants"))
        if not nodes:
            return PlatformResult(success=True, data=None)

        node = nodes[0]
        return PlatformResult(success=True, data={
            "variant_id": node["id"],
            "inventory_item_id": (node.get("inventoryItem") or {}).get("id"),
            "product_id": (node.get("product") or {}).get("id"),
        })

    def get_product_variants(self, product_id: str) -> PlatformResult:
        result = self.execute(PRODUCT_VARIANTS_QUERY, {"id": product_id})
        if not result.success:
            return result
        product = result.data.get("product")
        if product is None:
            return PlatformResult.failed(f"Product {product_id} not found")
        return PlatformResult(success=True, data=[_to_variant(n) for n in _edges(product.get("variants"))])

    # ===================
    # PRODUCT WRITES
    # ===================

    def create_product(self, product: dict) -> PlatformResult:
        """
        Create a product.

        Returns:
            PlatformResult with data = new product GID
        """
        result = self._mutate(PRODUCT_CREATE, {"product": product}, "productCreate")
        if not result.success:
            return result

        created = result.data.get("product") or {}
        if not created.get("id"):
            return PlatformResult.failed("productCreate returned no product id")

        logger.info("shopify_product_created", product_id=created["id"])
        return PlatformResult(success=True, data=created["id"])

    def update_product(self, product_id: str, product: dict) -> PlatformResult:
        result = self._mutate(PRODUCT_UPDATE, {"product": {"id": product_id, **product}}, "productUpdate")
        if result.success:
            result.data = product_id
        return result

    def bulk_create_variants(self, product_id: str, variants: list[dict]) -> PlatformResult:
        """Create variants, replacing the standalone default variant."""
        result = self._mutate(
            VARIANTS_BULK_CREATE,
            {"productId": product_id, "variants": variants},
            "productVariantsBulkCreate"
        )
        if result.success:
            result.data = [_to_variant(v) for v in result.data.get("productVariants") or []]
        return result

    def bulk_update_variants(self, product_id: str, variants: list[dict]) -> PlatformResult:
        result = self._mutate(
            VARIANTS_BULK_UPDATE,
            {"productId": product_id, "variants": variants},
            "productVariantsBulkUpdate"
        )
        if result.success:
            result.data = [_to_variant(v) for v in result.data.get("productVariants") or []]
        return result

    def create_media(self, product_id: str, image_url: str, alt: Optional[str] = None) -> PlatformResult:
        media = [{"originalSource": image_url, "mediaContentType": "IMAGE", "alt": alt or ""}]
        return self._mutate(
            CREATE_MEDIA,
            {"productId": product_id, "media": media},
            "productCreateMedia",
            errors_key="mediaUserErrors"
        )

    # ===================
    # INVENTORY
    # ===================

    def get_location_ids(self) -> PlatformResult:
        """Active shop locations (cached for the life of the client)."""
        if self._location_ids is not None:
            return PlatformResult(success=True, data=self._location_ids)

        result = self.execute(LOCATIONS_QUERY)
        if not result.success:
            return result

        self._location_ids = [
            node["id"] for node in _edges(result.data.get("locations"))
            if node.get("isActive", True)
        ]
        return PlatformResult(success=True, data=self._location_ids)

    def activate_inventory(self, inventory_item_id: str, location_id: str) -> PlatformResult:
        return self._mutate(
            INVENTORY_ACTIVATE,
            {"inventoryItemId": inventory_item_id, "locationId": location_id},
            "inventoryActivate"
        )

    def set_inventory_on_hand(self, quantities: list[dict]) -> PlatformResult:
        """
        Set on-hand quantities, chunked at batch_size per call.

        Args:
            quantities: [{"inventory_item_id", "location_id", "quantity"}, ...]

        Returns:
            PlatformResult with data {"updated": n}; fails if any chunk failed
        """
        updated = 0
        errors = []

        for start in range(0, len(quantities), self.batch_size):
            chunk = quantities[start:start + self.batch_size]
            set_quantities = [
                {
                    "inventoryItemId": q["inventory_item_id"],
                    "locationId": q["location_id"],
                    "quantity": int(q["quantity"]),
                }
                for q in chunk
            ]
            result = self._mutate(
                INVENTORY_SET_ON_HAND,
                {"input": {"reason": "correction", "setQuantities": set_quantities}},
                "inventorySetOnHandQuantities"
            )
            if result.success:
                updated += len(chunk)
            else:
                errors.append(result.error)

        if errors:
            return PlatformResult(success=False, data={"updated": updated}, error="; ".join(errors))

        return PlatformResult(success=True, data={"updated": updated})

    # ===================
    # PUBLISHING
    # ===================

    def publish_to_all_channels(self, product_id: str) -> PlatformResult:
        """
        Publish a product to every sales channel.

        Each channel is attempted independently; the result succeeds when at
        least one channel accepted the product.
        """
        result = self.execute(PUBLICATIONS_QUERY)
        if not result.success:
            return result

        published = []
        failed = []
        for publication in _edges(result.data.get("publications")):
            outcome = self._mutate(
                PUBLISHABLE_PUBLISH,
                {"id": product_id, "input": [{"publicationId": publication["id"]}]},
                "publishablePublish"
            )
            if outcome.success:
                published.append(publication.get("name") or publication["id"])
            else:
                failed.append(publication.get("name") or publication["id"])
                logger.warning(
                    "shopify_publish_channel_failed",
                    product_id=product_id,
                    publication=publication["id"],
                    error=outcome.error
                )

        data = {"published": published, "failed": failed}
        if not published and failed:
            return PlatformResult(success=False, data=data, error="No sales channel accepted the product")
        return PlatformResult(success=True, data=data)


_shopify_client: Optional[ShopifyClient] = None


def get_shopify_client() -> ShopifyClient:
    """
    Get or create Shopify client singleton.

    Raises:
        RemoteMutationError: If the store domain or token is not configured
    """
    global _shopify_client
    if _shopify_client is None:
        if not settings.shopify_configured:
            raise RemoteMutationError("configure", "Shopify store domain and access token are not set")
        _shopify_client = ShopifyClient()
    return _shopify_client
