"""
Nitaqat thresholds, v2025.10.

Per sector, per company size band: the minimum Saudization percentage for
the yellow, green and platinum bands. Below yellow is red. The green
minimum is the company's target.

Columns: (min_headcount, max_headcount or None, yellow_min, green_min, platinum_min)
"""

THRESHOLDS_VERSION = "v2025.10"
EFFECTIVE_DATE = "2025-10-01"

SECTORS = {
    "retail": {
        "name": "Retail Trade",
        "code": "G47",
        "bands": [
            (1, 9, 10, 20, 35),
            (10, 49, 15, 25, 40),
            (50, 499, 20, 30, 45),
            (500, 2999, 25, 35, 50),
            (3000, None, 30, 40, 55),
        ],
    },
    "construction": {
        "name": "Construction",
        "code": "F41",
        "bands": [
            (1, 9, 5, 10, 20),
            (10, 49, 6, 12, 22),
            (50, 499, 10, 15, 25),
            (500, 2999, 12, 18, 28),
            (3000, None, 14, 20, 30),
        ],
    },
    "information_technology": {
        "name": "Information & Communications Technology",
        "code": "J62",
        "bands": [
            (1, 9, 8, 15, 30),
            (10, 49, 12, 20, 35),
            (50, 499, 15, 25, 40),
            (500, 2999, 20, 30, 45),
            (3000, None, 25, 35, 50),
        ],
    },
    "manufacturing": {
        "name": "Manufacturing",
        "code": "C10",
        "bands": [
            (1, 9, 5, 10, 25),
            (10, 49, 8, 15, 28),
            (50, 499, 12, 20, 32),
            (500, 2999, 15, 24, 36),
            (3000, None, 18, 28, 40),
        ],
    },
    "hospitality": {
        "name": "Accommodation & Food Services",
        "code": "I55",
        "bands": [
            (1, 9, 8, 15, 30),
            (10, 49, 10, 18, 32),
            (50, 499, 14, 22, 36),
            (500, 2999, 18, 26, 40),
            (3000, None, 20, 30, 45),
        ],
    },
    "other": {
        "name": "Other Activities",
        "code": "S96",
        "bands": [
            (1, 9, 6, 12, 25),
            (10, 49, 10, 18, 30),
            (50, 499, 14, 22, 35),
            (500, 2999, 18, 26, 40),
            (3000, None, 20, 30, 45),
        ],
    },
}
