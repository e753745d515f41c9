from dataclasses import dataclass
from typing import Optional, Union
from marketplace.extensions import db
from marketplace.errors import ValidationFailed
from marketplace.utils import optional_int
from marketplace.models import (
    Product,
    ProductVariant,
    Service,
    ServicePackage,
)


@dataclass(frozen=True)
class ProductItem:
    product_id: int
    variant_id: Optional[int] = None

    kind = 'product'

    @property
    def item_id(self):
        return self.product_id

    @property
    def option_id(self):
        return self.variant_id


@dataclass(frozen=True)
class ServiceItem:
    service_id: int
    package_id: Optional[int] = None

    kind = 'service'

    @property
    def item_id(self):
        return self.service_id

    @property
    def option_id(self):
        return self.package_id


PurchaseItem = Union[ProductItem, ServiceItem]


def item_from_payload(data):
    """Build the item reference from request JSON.

    Accepts either ``product_id``/``variant_id`` or
    ``service_id``/``package_id``; exactly one item kind must be present.
    """
    data = data or {}
    product_id = optional_int(data.get('product_id'), 'product_id')
    service_id = optional_int(data.get('service_id'), 'service_id')
    if (product_id is None) == (service_id is None):
        raise ValidationFailed(
            'Exactly one of product_id or service_id is required')
    if product_id is not None:
        if data.get('package_id') not in (None, ''):
            raise ValidationFailed('package_id applies to services only')
        variant_id = data.get('variant_id', data.get('product_variant_id'))
        return ProductItem(product_id, optional_int(variant_id, 'variant_id'))
    if data.get('variant_id') not in (None, ''):
        raise ValidationFailed('variant_id applies to products only')
    package_id = data.get('package_id', data.get('service_package_id'))
    return ServiceItem(service_id, optional_int(package_id, 'package_id'))


def load_item(item):
    if isinstance(item, ProductItem):
        return db.session.get(Product, item.product_id)
    if isinstance(item, ServiceItem):
        return db.session.get(Service, item.service_id)
    raise TypeError(f'Unknown purchase item: {item!r}')


def load_option(item):
    """Return the variant/package named by ``item``, or None if unset.

    Raises ``ValidationFailed`` when the option does not exist or belongs
    to another product/service.
    """
    if item.option_id is None:
        return None
    if isinstance(item, ProductItem):
        variant = db.session.get(ProductVariant, item.variant_id)
        if not variant or variant.product_id != item.product_id:
            raise ValidationFailed(
                'Variant does not belong to the selected product')
        return variant
    package = db.session.get(ServicePackage, item.package_id)
    if not package or package.service_id != item.service_id:
        raise ValidationFailed(
            'Package does not belong to the selected service')
    return package


def item_columns(item):
    """Column values to store on a quote or design approval row."""
    if isinstance(item, ProductItem):
        return {'product_id': item.product_id, 'service_id': None}
    return {'product_id': None, 'service_id': item.service_id}


def item_filter(model, item, match_option=False):
    """SQLAlchemy criteria selecting quote or design rows for ``item``."""
    if isinstance(item, ProductItem):
        criteria = [model.product_id == item.product_id]
        option = getattr(model, 'product_variant_id', None)
        if option is None:
            option = model.variant_id
    else:
        criteria = [model.service_id == item.service_id]
        option = getattr(model, 'service_package_id', None)
        if option is None:
            option = model.package_id
    if match_option and item.option_id is not None:
        criteria.append(option == item.option_id)
    return criteria


def seller_of(item):
    record = load_item(item)
    return record.seller_id if record else None
