import pandas as pd
import numpy as np
from datetime import date, datetime, timezone

from config.locations import LOCATIONS
from orders.source import LINE_ITEM_SEPARATOR, rows_to_orders

PRODUCTS = [
    "Classic Roses Bouquet",
    "Native Posy",
    "Luxe Jar Arrangement",
    "Large Jar Arrangement",
    "Prosecco 750ml",
    "Soy Candle",
    "Potted Plant",
    "Chocolate Box",
]

RESIDENCE_TYPES = ["Business", "House", "Apartment", "Hospital", ""]

SUBURBS = {
    "Melbourne": ("Richmond", "Victoria", "3121"),
    "Sydney": ("Surry Hills", "New South Wales", "2010"),
    "Perth": ("Subiaco", "Western Australia", "6008"),
    "Adelaide": ("Norwood", "South Australia", "5067"),
    "Brisbane": ("Fortitude Valley", "Queensland", "4006"),
}


def generate_mock_orders(num_orders=200, delivery_date=None, output_file="mock_orders.csv", seed=None):
    """
    Generates rows shaped like the eligible-orders query result.
    Locations are weighted toward Melbourne and Sydney so batches form in the busy cities.
    """
    rng = np.random.default_rng(seed)
    delivery_date = delivery_date or date.today()
    now = datetime.now(timezone.utc)

    data = []
    for order_index in range(num_orders):
        location = rng.choice(LOCATIONS, p=[0.35, 0.3, 0.1, 0.1, 0.15])
        suburb, state, postcode = SUBURBS[location]
        products = rng.choice(PRODUCTS, size=rng.integers(1, 4), replace=False)
        has_message = rng.random() < 0.6

        data.append({
            "id": 100000 + order_index,
            "order_number": f"#{20000 + order_index}",
            "shop_id": rng.choice([10, 6], p=[0.7, 0.3]),
            "email": f"customer{order_index}@example.com",
            "location_name": location,
            "delivery_date": delivery_date.isoformat(),
            "building_name": "",
            "room_number": "",
            "residence_type": rng.choice(RESIDENCE_TYPES),
            "delivery_instructions": "",
            "sender_name": f"Sender {order_index}" if has_message else "",
            "recipient_name": f"Recipient {order_index}",
            "packer_note": "",
            "card_message": "Happy birthday!" if has_message else "",
            "name": f"Recipient {order_index}",
            "company": "",
            "address1": f"{rng.integers(1, 400)} Example Street",
            "address2": "",
            "city": suburb,
            "province": state,
            "zip": postcode,
            "phone": f"04{rng.integers(10000000, 99999999)}",
            "order_products": LINE_ITEM_SEPARATOR.join(sorted(products)),
            "created_at": now.isoformat(),
        })

    df = pd.DataFrame(data)
    df.to_csv(output_file, index=False)
    print(f"Generated {num_orders} orders for {delivery_date} and saved to '{output_file}'")

    print("\nOrders per location:")
    for name, count in df["location_name"].value_counts().items():
        print(f"  {name}: {count} orders")
    return df


def load_mock_orders(path):
    """Read a generated CSV back into EligibleOrder objects."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df["shop_id"] = df["shop_id"].astype(int)
    return rows_to_orders(df.to_dict("records"))


if __name__ == "__main__":
    generate_mock_orders(num_orders=200, seed=7)
