import logging
from decimal import Decimal

from sqlmodel import create_engine, Session, select

from table_ordering.db.menu import MenuItemModel
from table_ordering.settings import Settings

logger = logging.getLogger(__name__)

MENU = [
    # name, category, price, stock, image
    ("Chicken Adobo", "Main Course", "120.00", 30, "adobo.jpg"),
    ("Pork Sinigang", "Soup", "150.00", 20, "sinigang.jpg"),
    ("Beef Kare-Kare", "Main Course", "220.00", 15, "kare-kare.jpg"),
    ("Pancit Canton", "Noodles", "95.00", 25, "pancit.jpg"),
    ("Lumpiang Shanghai", "Appetizer", "80.00", 40, "lumpia.jpg"),
    ("Garlic Rice", "Rice", "35.00", 100, None),
    ("Halo-Halo", "Dessert", "90.00", 20, "halo-halo.jpg"),
    ("Calamansi Juice", "Drinks", "45.00", 50, None),
]


def create_test_data():
    settings = Settings()
    engine = create_engine(settings.db_url)

    with Session(engine) as session:
        existing = {item.name for item in session.exec(select(MenuItemModel))}
        created = 0
        for name, category, price, quantity, image in MENU:
            if name in existing:
                continue
            session.add(MenuItemModel(
                name=name,
                description=f"House {name.lower()}",
                price=Decimal(price),
                quantity=quantity,
                category=category,
                image=image,
            ))
            created += 1

        session.commit()
        logger.info(f"Test data created: {created} menu items")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(threadName)s [%(name)s] %(levelname)-8s %(message)s")
    create_test_data()
