# backend/agrimate/tools/mandi_fallback.py
"""
Representative mandi prices served when data.gov.in is unreachable
(it blocks many cloud provider IPs) or no portal key is configured.
"""
import datetime as dt
import random
from typing import Any, Dict, List, Optional

# Jitter widths in INR/quintal (offset within ±width/2), drawn independently on every read
MIN_MAX_JITTER = 100
MODAL_JITTER = 80


def _m(state: str, district: str, market: str, variety: str,
       min_price: int, max_price: int, modal_price: int, grade: str = "FAQ") -> Dict[str, Any]:
    return {
        "state": state, "district": district, "market": market,
        "variety": variety, "grade": grade,
        "min_price": min_price, "max_price": max_price, "modal_price": modal_price,
    }


FALLBACK_TABLE: Dict[str, List[Dict[str, Any]]] = {
    "Wheat": [
        _m("Madhya Pradesh", "Hoshangabad", "Hoshangabad", "Lokwan", 2200, 2850, 2600),
        _m("Uttar Pradesh", "Lucknow", "Lucknow", "Dara", 2350, 2900, 2700),
        _m("Punjab", "Ludhiana", "Ludhiana", "PBW-343", 2400, 2950, 2750),
        _m("Haryana", "Karnal", "Karnal", "Dara", 2300, 2880, 2650),
        _m("Rajasthan", "Jaipur", "Jaipur", "Lokwan", 2250, 2820, 2580),
        _m("Gujarat", "Ahmedabad", "Ahmedabad", "Lokwan", 2280, 2860, 2620),
        _m("Bihar", "Patna", "Patna", "Dara", 2150, 2780, 2500),
        _m("Maharashtra", "Latur", "Latur", "Sharbati", 2500, 3100, 2850),
    ],
    "Rice": [
        _m("West Bengal", "Burdwan", "Burdwan", "Swarna", 2800, 3600, 3200),
        _m("Andhra Pradesh", "Krishna", "Vijayawada", "BPT-5204", 3200, 3900, 3550),
        _m("Tamil Nadu", "Thanjavur", "Thanjavur", "Ponni", 3000, 3700, 3400),
        _m("Punjab", "Amritsar", "Amritsar", "Basmati-1121", 3800, 4500, 4100),
        _m("Uttar Pradesh", "Varanasi", "Varanasi", "Sarbati", 2900, 3500, 3150),
        _m("Chhattisgarh", "Raipur", "Raipur", "HMT", 2700, 3400, 3050),
    ],
    "Mustard": [
        _m("Rajasthan", "Alwar", "Alwar", "Rai", 4800, 5600, 5200),
        _m("Madhya Pradesh", "Morena", "Morena", "Black", 4700, 5500, 5100),
        _m("Haryana", "Sirsa", "Sirsa", "Rai", 4900, 5700, 5350),
        _m("Uttar Pradesh", "Agra", "Agra", "Yellow", 4600, 5400, 5050),
        _m("Gujarat", "Banaskantha", "Deesa", "Rai", 4750, 5550, 5150),
    ],
    "Onion": [
        _m("Maharashtra", "Nashik", "Lasalgaon", "Red", 800, 1800, 1200),
        _m("Karnataka", "Bangalore", "Bangalore", "Bellary Red", 900, 2000, 1350),
        _m("Madhya Pradesh", "Indore", "Indore", "Red", 750, 1700, 1100),
        _m("Rajasthan", "Jodhpur", "Jodhpur", "White", 850, 1750, 1250),
        _m("Gujarat", "Rajkot", "Rajkot", "Red", 700, 1650, 1050),
    ],
    "Potato": [
        _m("Uttar Pradesh", "Agra", "Agra", "Jyoti", 600, 1200, 900),
        _m("West Bengal", "Hooghly", "Hooghly", "Chandramukhi", 550, 1100, 850),
        _m("Punjab", "Jalandhar", "Jalandhar", "Pukhraj", 650, 1250, 950),
        _m("Bihar", "Nalanda", "Nalanda", "Jyoti", 500, 1050, 800),
    ],
    "Tomato": [
        _m("Karnataka", "Kolar", "Kolar", "Local", 500, 2500, 1400),
        _m("Andhra Pradesh", "Chittoor", "Madanapalli", "Hybrid", 600, 2800, 1600),
        _m("Maharashtra", "Pune", "Pune", "Local", 450, 2200, 1200),
        _m("Madhya Pradesh", "Ratlam", "Ratlam", "Hybrid", 550, 2400, 1350),
    ],
    "Soybean": [
        _m("Madhya Pradesh", "Indore", "Indore", "Yellow", 4200, 4900, 4550),
        _m("Maharashtra", "Latur", "Latur", "Yellow", 4100, 4800, 4500),
        _m("Rajasthan", "Kota", "Kota", "Yellow", 4000, 4700, 4400),
    ],
    "Gram": [
        _m("Madhya Pradesh", "Vidisha", "Vidisha", "Desi", 4500, 5200, 4850),
        _m("Rajasthan", "Churu", "Churu", "Kabuli", 5200, 6100, 5700),
        _m("Maharashtra", "Akola", "Akola", "Desi", 4400, 5100, 4800),
    ],
    "Maize": [
        _m("Karnataka", "Davangere", "Davangere", "Yellow", 1800, 2400, 2100),
        _m("Bihar", "Samastipur", "Samastipur", "Yellow", 1700, 2300, 2000),
        _m("Andhra Pradesh", "Guntur", "Guntur", "Hybrid", 1850, 2450, 2150),
    ],
    "Sugarcane": [
        _m("Uttar Pradesh", "Meerut", "Meerut", "Desi", 350, 425, 385),
        _m("Maharashtra", "Kolhapur", "Kolhapur", "Co-86032", 320, 400, 360),
        _m("Karnataka", "Belgaum", "Belgaum", "Co-86032", 310, 395, 355),
    ],
    "Cotton": [
        _m("Gujarat", "Rajkot", "Rajkot", "Shankar-6", 6200, 7100, 6650),
        _m("Maharashtra", "Jalgaon", "Jalgaon", "H-4", 6000, 6900, 6500),
        _m("Telangana", "Adilabad", "Adilabad", "MCU-5", 5900, 6800, 6400),
    ],
    "Groundnut": [
        _m("Gujarat", "Junagadh", "Junagadh", "Bold", 5000, 5800, 5400),
        _m("Andhra Pradesh", "Kurnool", "Kurnool", "Java", 4800, 5600, 5200),
        _m("Rajasthan", "Bikaner", "Bikaner", "Bold", 4900, 5700, 5300),
    ],
    "Chilli": [
        _m("Andhra Pradesh", "Guntur", "Guntur", "Teja", 12000, 18000, 15000),
        _m("Telangana", "Warangal", "Warangal", "Byadgi", 11000, 16500, 14000),
        _m("Madhya Pradesh", "Khargone", "Khargone", "Teja", 11500, 17000, 14500),
    ],
    "Turmeric": [
        _m("Telangana", "Nizamabad", "Nizamabad", "Finger", 8000, 12000, 10000),
        _m("Maharashtra", "Sangli", "Sangli", "Rajapuri", 7500, 11500, 9500),
        _m("Tamil Nadu", "Erode", "Erode", "Finger", 8500, 12500, 10500),
    ],
}


def today_ddmmyyyy(today: Optional[dt.date] = None) -> str:
    """Arrival dates use the portal's dd/mm/yyyy format."""
    return (today or dt.date.today()).strftime("%d/%m/%Y")


def _jitter(rng: random.Random, width: int) -> int:
    return round((rng.random() - 0.5) * width)


def fallback_records(
    commodity: Optional[str] = None,
    state: Optional[str] = None,
    rng: Optional[random.Random] = None,
    today: Optional[dt.date] = None,
) -> List[Dict[str, Any]]:
    """
    Synthesize price records from the static table.

    Commodity and state filters are case-insensitive. Min, max and modal each get
    their own jitter; modal is not clamped into [min, max].
    """
    rng = rng or random.Random()
    date_str = today_ddmmyyyy(today)

    entries = FALLBACK_TABLE.items()
    if commodity:
        entries = [(c, m) for c, m in entries if c.lower() == commodity.strip().lower()]

    records = []
    for name, markets in entries:
        for m in markets:
            records.append({
                "state": m["state"],
                "district": m["district"],
                "market": m["market"],
                "commodity": name,
                "variety": m["variety"],
                "grade": m["grade"],
                "arrivalDate": date_str,
                "minPrice": m["min_price"] + _jitter(rng, MIN_MAX_JITTER),
                "maxPrice": m["max_price"] + _jitter(rng, MIN_MAX_JITTER),
                "modalPrice": m["modal_price"] + _jitter(rng, MODAL_JITTER),
            })

    if state:
        records = [r for r in records if r["state"].lower() == state.strip().lower()]
    return records
