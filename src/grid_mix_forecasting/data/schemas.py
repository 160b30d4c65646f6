from enum import StrEnum

class Column(StrEnum):
    """
    Column identifiers of the raw grid export and its derivatives.

    Note:
        Measurements are instantaneous outputs reported every five
        minutes. Interconnector (``*_ict``) columns are imports and may
        be negative when power flows out of the grid.
    """
    ID = 'id'
    TIMESTAMP = 'timestamp'
    DEMAND = 'demand'
    FREQUENCY = 'frequency'
    COAL = 'coal'
    NUCLEAR = 'nuclear'
    CCGT = 'ccgt'
    WIND = 'wind'
    PUMPED = 'pumped'
    HYDRO = 'hydro'
    BIOMASS = 'biomass'
    OIL = 'oil'
    SOLAR = 'solar'
    OCGT = 'ocgt'
    FRENCH_ICT = 'french_ict'
    DUTCH_ICT = 'dutch_ict'
    IRISH_ICT = 'irish_ict'
    EW_ICT = 'ew_ict'
    NEMO = 'nemo'
    OTHER = 'other'
    NORTH_SOUTH = 'north_south'
    SCOTLAND_ENGLAND = 'scotland_england'
    IFA2 = 'ifa2'
    INTELEC_ICT = 'intelec_ict'
    NSL = 'nsl'
    # Derived
    DATE = 'date'
    TOTAL_OTHER = 'total_other'
    OUTLIER = 'outlier'

# Low-signal generation and import columns folded into TOTAL_OTHER
MINOR_SOURCES = (
    Column.BIOMASS,
    Column.OIL,
    Column.SOLAR,
    Column.OCGT,
    Column.FRENCH_ICT,
    Column.DUTCH_ICT,
    Column.IRISH_ICT,
    Column.EW_ICT,
    Column.NEMO,
    Column.OTHER,
    Column.SCOTLAND_ENGLAND,
    Column.IFA2,
    Column.INTELEC_ICT,
    Column.NSL,
)
# Sources kept as individual columns after reduction
MAJOR_SOURCES = (
    Column.COAL,
    Column.NUCLEAR,
    Column.CCGT,
    Column.WIND,
    Column.PUMPED,
    Column.HYDRO,
)
# Every numeric measurement in the raw export
MEASUREMENTS = (
    Column.DEMAND,
    Column.FREQUENCY,
    *MAJOR_SOURCES,
    *MINOR_SOURCES,
    Column.NORTH_SOUTH,
)
RAW_COLUMNS = (Column.ID, Column.TIMESTAMP, *MEASUREMENTS)
# Columns of a reduced (and aggregated) row
REDUCED_COLUMNS = (
    Column.DATE,
    Column.DEMAND,
    *MAJOR_SOURCES,
    Column.TOTAL_OTHER,
)
# Forecast target and the covariates of the dynamic regression
TARGET = Column.WIND
PREDICTORS = (
    Column.DEMAND,
    Column.NUCLEAR,
    Column.CCGT,
    Column.PUMPED,
    Column.HYDRO,
    Column.TOTAL_OTHER,
    Column.OUTLIER,
)
# Dropped from the model frame to mitigate collinearity
COLLINEAR = (Column.COAL,)
