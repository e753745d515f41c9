from decimal import Decimal
from marketplace import create_app
from marketplace.extensions import db
from marketplace.models import (
    User,
    UserRole,
    Product,
    ProductVariant,
    Service,
    ServicePackage,
)

app = create_app()

with app.app_context():
    # Create admin account (if not exists)
    admin_email = "admin@example.com"
    admin = User.query.filter_by(email=admin_email).first()
    if not admin:
        admin = User(email=admin_email, username="admin", role=UserRole.ADMIN)
        admin.set_password("admin123")
        db.session.add(admin)
        print(f"Created admin account: {admin_email} / admin123")

    buyer_email = "buyer@example.com"
    buyer = User.query.filter_by(email=buyer_email).first()
    if not buyer:
        buyer = User(email=buyer_email, username="buyer", role=UserRole.BUYER)
        buyer.set_password("buyer123")
        db.session.add(buyer)
        print(f"Created buyer account: {buyer_email} / buyer123")

    sellers_data = [
        {
            "email": "printshop@example.com",
            "username": "printshop",
            "commission_rate": Decimal("20.00"),
            "products": [
                {
                    "title": "Custom Printed T-Shirt",
                    "description": "Cotton t-shirt printed with your design",
                    "price": Decimal("24.99"),
                    "requires_quote": False,
                    "requires_design_approval": True,
                    "variants": [
                        ("Small", "TSHIRT-S", Decimal("24.99")),
                        ("Medium", "TSHIRT-M", Decimal("24.99")),
                        ("Large", "TSHIRT-L", Decimal("26.99")),
                    ],
                },
                {
                    "title": "Engraved Wooden Sign",
                    "description": "Hand-finished sign, priced per design",
                    "price": Decimal("45.00"),
                    "requires_quote": True,
                    "requires_design_approval": True,
                    "variants": [
                        ("Standard", "SIGN-STD", Decimal("45.00")),
                    ],
                },
                {
                    "title": "Plain Tote Bag",
                    "description": "Canvas tote bag, no customisation",
                    "price": Decimal("12.50"),
                    "requires_quote": False,
                    "requires_design_approval": False,
                    "variants": [
                        ("Natural", "TOTE-NAT", Decimal("12.50")),
                        ("Black", "TOTE-BLK", Decimal("12.50")),
                    ],
                },
            ],
            "services": [],
        },
        {
            "email": "studio@example.com",
            "username": "studio",
            "commission_rate": Decimal("15.00"),
            "products": [],
            "services": [
                {
                    "title": "Logo Design",
                    "description": "Custom logo with two revision rounds",
                    "requires_quote": True,
                    "requires_design_approval": False,
                    "packages": [
                        ("Basic", Decimal("150.00"), 120),
                        ("Premium", Decimal("400.00"), 480),
                    ],
                },
            ],
        },
    ]

    for seller_data in sellers_data:
        seller = User.query.filter_by(email=seller_data["email"]).first()
        if seller:
            continue

        seller = User(
            email=seller_data["email"],
            username=seller_data["username"],
            role=UserRole.SELLER,
            commission_rate=seller_data["commission_rate"],
        )
        seller.set_password("seller123")
        db.session.add(seller)
        db.session.flush()
        print(f"Created seller: {seller_data['email']} / seller123")

        for product_data in seller_data["products"]:
            product = Product(
                seller_id=seller.id,
                title=product_data["title"],
                description=product_data["description"],
                price=product_data["price"],
                requires_quote=product_data["requires_quote"],
                requires_design_approval=product_data[
                    "requires_design_approval"],
            )
            db.session.add(product)
            db.session.flush()
            for name, sku, price in product_data["variants"]:
                db.session.add(ProductVariant(
                    product_id=product.id,
                    name=name,
                    sku=sku,
                    price=price,
                    inventory=50,
                ))
            print(f"  Created product: {product_data['title']}")

        for service_data in seller_data["services"]:
            service = Service(
                seller_id=seller.id,
                title=service_data["title"],
                description=service_data["description"],
                requires_quote=service_data["requires_quote"],
                requires_design_approval=service_data[
                    "requires_design_approval"],
            )
            db.session.add(service)
            db.session.flush()
            for name, price, minutes in service_data["packages"]:
                db.session.add(ServicePackage(
                    service_id=service.id,
                    name=name,
                    price=price,
                    duration_minutes=minutes,
                ))
            print(f"  Created service: {service_data['title']}")

    db.session.commit()
    print("Data initialization completed!")
