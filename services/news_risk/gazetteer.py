"""
Supported cities for news-derived danger zones.

Keys are lowercase city names as they appear in article text.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class City:
    name: str
    lat: float
    lng: float
    state: str

    @property
    def display_name(self) -> str:
        return self.name[:1].upper() + self.name[1:]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "lat": self.lat,
            "lng": self.lng,
            "state": self.state,
        }


# name: (lat, lng, state)
_CITY_TABLE = {
    "varanasi": (25.3176, 82.9739, "Uttar Pradesh"),
    "delhi": (28.7041, 77.1025, "Delhi"),
    "mumbai": (19.0760, 72.8777, "Maharashtra"),
    "bangalore": (12.9716, 77.5946, "Karnataka"),
    "kolkata": (22.5726, 88.3639, "West Bengal"),
    "chennai": (13.0827, 80.2707, "Tamil Nadu"),
    "hyderabad": (17.3850, 78.4867, "Telangana"),
    "pune": (18.5204, 73.8567, "Maharashtra"),
    "ahmedabad": (23.0225, 72.5714, "Gujarat"),
    "jaipur": (26.9124, 75.7873, "Rajasthan"),
    "lucknow": (26.8467, 80.9462, "Uttar Pradesh"),
    "kanpur": (26.4499, 80.3319, "Uttar Pradesh"),
    "nagpur": (21.1458, 79.0882, "Maharashtra"),
    "indore": (22.7196, 75.8577, "Madhya Pradesh"),
    "thane": (19.2183, 72.9781, "Maharashtra"),
    "bhopal": (23.2599, 77.4126, "Madhya Pradesh"),
    "visakhapatnam": (17.6868, 83.2185, "Andhra Pradesh"),
    "pimpri": (18.6298, 73.7997, "Maharashtra"),
    "patna": (25.5941, 85.1376, "Bihar"),
    "vadodara": (22.3072, 73.1812, "Gujarat"),
    "ludhiana": (30.9010, 75.8573, "Punjab"),
    "agra": (27.1767, 78.0081, "Uttar Pradesh"),
    "nashik": (19.9975, 73.7898, "Maharashtra"),
    "faridabad": (28.4089, 77.3178, "Haryana"),
    "meerut": (28.9845, 77.7064, "Uttar Pradesh"),
    "rajkot": (22.3039, 70.8022, "Gujarat"),
    "kalyan": (19.2437, 73.1355, "Maharashtra"),
    "vasai": (19.4883, 72.8054, "Maharashtra"),
    "srinagar": (34.0837, 74.7973, "Jammu and Kashmir"),
    "aurangabad": (19.8762, 75.3433, "Maharashtra"),
    "dhanbad": (23.7957, 86.4304, "Jharkhand"),
    "amritsar": (31.6340, 74.8723, "Punjab"),
    "navi mumbai": (19.0330, 73.0297, "Maharashtra"),
    "allahabad": (25.4358, 81.8463, "Uttar Pradesh"),
    "ranchi": (23.3441, 85.3096, "Jharkhand"),
    "howrah": (22.5958, 88.2636, "West Bengal"),
    "coimbatore": (11.0168, 76.9558, "Tamil Nadu"),
    "jabalpur": (23.1815, 79.9864, "Madhya Pradesh"),
    "gwalior": (26.2183, 78.1828, "Madhya Pradesh"),
    "vijayawada": (16.5062, 80.6480, "Andhra Pradesh"),
    "jodhpur": (26.2389, 73.0243, "Rajasthan"),
    "madurai": (9.9252, 78.1198, "Tamil Nadu"),
    "raipur": (21.2514, 81.6296, "Chhattisgarh"),
    "kota": (25.2138, 75.8648, "Rajasthan"),
    "chandigarh": (30.7333, 76.7794, "Chandigarh"),
    "guwahati": (26.1445, 91.7362, "Assam"),
    "solapur": (17.6599, 75.9064, "Maharashtra"),
}

CITIES: Dict[str, City] = {
    name: City(name=name, lat=lat, lng=lng, state=state)
    for name, (lat, lng, state) in _CITY_TABLE.items()
}


def get_city(name: str) -> Optional[City]:
    return CITIES.get(name.strip().lower())


def supported_cities() -> List[City]:
    return list(CITIES.values())


def search_cities(query: str) -> List[City]:
    """Cities whose name or state contains ``query`` (case-insensitive)."""
    query = query.strip().lower()
    return [c for c in CITIES.values() if query in c.name or query in c.state.lower()]
