# ==============================================================================
# Country Codes
# ==============================================================================
"""
ISO 3166-1 alpha-2 to alpha-3 lookup used by map data.

GeoIP stores countries as alpha-2 codes; choropleth maps key on alpha-3.
"""

from types import MappingProxyType

ALPHA3_CODES = MappingProxyType(
    {
        # North America
        "US": "USA", "CA": "CAN", "MX": "MEX",
        # South America
        "AR": "ARG", "BR": "BRA", "CL": "CHL", "CO": "COL", "PE": "PER",
        "VE": "VEN", "EC": "ECU", "BO": "BOL", "PY": "PRY", "UY": "URY",
        # Western Europe
        "GB": "GBR", "DE": "DEU", "FR": "FRA", "ES": "ESP", "IT": "ITA",
        "NL": "NLD", "BE": "BEL", "CH": "CHE", "AT": "AUT", "PT": "PRT",
        "IE": "IRL", "LU": "LUX",
        # Northern Europe
        "SE": "SWE", "NO": "NOR", "DK": "DNK", "FI": "FIN", "IS": "ISL",
        # Eastern Europe
        "PL": "POL", "CZ": "CZE", "SK": "SVK", "HU": "HUN", "RO": "ROU",
        "BG": "BGR", "UA": "UKR", "BY": "BLR", "RU": "RUS", "MD": "MDA",
        "LT": "LTU", "LV": "LVA", "EE": "EST",
        # Southern Europe
        "GR": "GRC", "HR": "HRV", "SI": "SVN", "RS": "SRB", "BA": "BIH",
        "ME": "MNE", "MK": "MKD", "AL": "ALB", "CY": "CYP", "MT": "MLT",
        # Middle East
        "IL": "ISR", "SA": "SAU", "AE": "ARE", "TR": "TUR", "IR": "IRN",
        "IQ": "IRQ", "JO": "JOR", "LB": "LBN", "SY": "SYR", "YE": "YEM",
        "OM": "OMN", "KW": "KWT", "BH": "BHR", "QA": "QAT", "PS": "PSE",
        # East Asia
        "CN": "CHN", "JP": "JPN", "KR": "KOR", "KP": "PRK", "TW": "TWN",
        "HK": "HKG", "MO": "MAC", "MN": "MNG",
        # Southeast Asia
        "TH": "THA", "VN": "VNM", "PH": "PHL", "ID": "IDN", "MY": "MYS",
        "SG": "SGP", "MM": "MMR", "KH": "KHM", "LA": "LAO", "BN": "BRN",
        "TL": "TLS",
        # South Asia
        "IN": "IND", "PK": "PAK", "BD": "BGD", "LK": "LKA", "NP": "NPL",
        "AF": "AFG", "BT": "BTN", "MV": "MDV",
        # Central Asia
        "KZ": "KAZ", "UZ": "UZB", "TM": "TKM", "KG": "KGZ", "TJ": "TJK",
        # Africa - North
        "EG": "EGY", "DZ": "DZA", "MA": "MAR", "TN": "TUN", "LY": "LBY",
        "SD": "SDN", "SS": "SSD",
        # Africa - West
        "NG": "NGA", "GH": "GHA", "CI": "CIV", "SN": "SEN", "ML": "MLI",
        "BF": "BFA", "NE": "NER", "GN": "GIN", "BJ": "BEN", "TG": "TGO",
        "LR": "LBR", "SL": "SLE", "GM": "GMB", "GW": "GNB", "MR": "MRT",
        # Africa - East
        "KE": "KEN", "ET": "ETH", "TZ": "TZA", "UG": "UGA", "SO": "SOM",
        "RW": "RWA", "BI": "BDI", "DJ": "DJI", "ER": "ERI",
        # Africa - Central
        "CD": "COD", "CM": "CMR", "AO": "AGO", "TD": "TCD", "CF": "CAF",
        "CG": "COG", "GA": "GAB", "GQ": "GNQ", "ST": "STP",
        # Africa - South
        "ZA": "ZAF", "ZW": "ZWE", "ZM": "ZMB", "MW": "MWI", "MZ": "MOZ",
        "BW": "BWA", "NA": "NAM", "LS": "LSO", "SZ": "SWZ", "MG": "MDG",
        "MU": "MUS", "SC": "SYC", "KM": "COM", "RE": "REU",
        # Oceania
        "AU": "AUS", "NZ": "NZL", "PG": "PNG", "FJ": "FJI", "NC": "NCL",
        "PF": "PYF", "SB": "SLB", "VU": "VUT", "WS": "WSM", "GU": "GUM",
        "AS": "ASM", "MP": "MNP", "FM": "FSM", "PW": "PLW", "MH": "MHL",
        "KI": "KIR", "TO": "TON", "TV": "TUV", "NR": "NRU",
        # Caribbean
        "CU": "CUB", "DO": "DOM", "HT": "HTI", "JM": "JAM", "TT": "TTO",
        "BB": "BRB", "BS": "BHS", "GD": "GRD", "LC": "LCA", "VC": "VCT",
        "AG": "ATG", "DM": "DMA", "KN": "KNA", "PR": "PRI", "VI": "VIR",
        "TC": "TCA", "KY": "CYM", "BM": "BMU", "AW": "ABW", "CW": "CUW",
        # Central America
        "GT": "GTM", "HN": "HND", "SV": "SLV", "NI": "NIC", "CR": "CRI",
        "PA": "PAN", "BZ": "BLZ",
    }
)


def to_alpha3(alpha2: str | None) -> str | None:
    """Alpha-3 code for an alpha-2 country code, or None when unmapped."""
    if not alpha2:
        return None
    return ALPHA3_CODES.get(alpha2.upper())
