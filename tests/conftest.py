import csv
import io

import matplotlib

matplotlib.use("Agg")

import pandas as pd
import pytest

from shooting_analytics.data_cleaning import TIME_OF_DAY_DTYPE, clean_incidents
from shooting_analytics.data_collection import read_incidents

HEADER = [
    "INCIDENT_KEY", "OCCUR_DATE", "OCCUR_TIME", "BORO", "LOC_OF_OCCUR_DESC",
    "PRECINCT", "JURISDICTION_CODE", "LOC_CLASSFCTN_DESC", "LOCATION_DESC",
    "STATISTICAL_MURDER_FLAG", "PERP_AGE_GROUP", "PERP_SEX", "PERP_RACE",
    "VIC_AGE_GROUP", "VIC_SEX", "VIC_RACE", "X_COORD_CD", "Y_COORD_CD",
    "Latitude", "Longitude", "Lon_Lat",
]

BASE_ROW = {
    "INCIDENT_KEY": "228798151",
    "OCCUR_DATE": "05/27/2021",
    "OCCUR_TIME": "21:30:00",
    "BORO": "QUEENS",
    "LOC_OF_OCCUR_DESC": "",
    "PRECINCT": "105",
    "JURISDICTION_CODE": "0",
    "LOC_CLASSFCTN_DESC": "",
    "LOCATION_DESC": "",
    "STATISTICAL_MURDER_FLAG": "false",
    "PERP_AGE_GROUP": "",
    "PERP_SEX": "",
    "PERP_RACE": "",
    "VIC_AGE_GROUP": "18-24",
    "VIC_SEX": "M",
    "VIC_RACE": "BLACK",
    "X_COORD_CD": "1058925",
    "Y_COORD_CD": "180924",
    "Latitude": "40.662965",
    "Longitude": "-73.730839",
    "Lon_Lat": "POINT (-73.73083868899994 40.662964620000025)",
}


def make_row(**overrides) -> dict:
    row = dict(BASE_ROW)
    row.update(overrides)
    return row


def to_csv_bytes(rows, header=HEADER) -> bytes:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=header, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)
    return buf.getvalue().encode()


def perp(age, sex, race) -> dict:
    return {"PERP_AGE_GROUP": age, "PERP_SEX": sex, "PERP_RACE": race}


@pytest.fixture
def sample_rows():
    return [
        make_row(),
        make_row(OCCUR_DATE="01/15/2020", OCCUR_TIME="22:30:00", BORO="BROOKLYN",
                 PRECINCT="75", **perp("UNKNOWN", "UNKNOWN", "UNKNOWN")),
        make_row(OCCUR_DATE="07/04/2019", OCCUR_TIME="13:05:00", BORO="BRONX",
                 PRECINCT="44", STATISTICAL_MURDER_FLAG="true", **perp("25-44", "M", "BLACK")),
        make_row(OCCUR_DATE="12/31/2022", OCCUR_TIME="05:00:00", BORO="MANHATTAN",
                 PRECINCT="9", **perp("(null)", "(null)", "(null)")),
        make_row(OCCUR_DATE="03/10/2021", OCCUR_TIME="11:59:00", BORO="STATEN ISLAND",
                 PRECINCT="120", **perp("18-24", "UNKNOWN", "(null)")),
        make_row(OCCUR_DATE="09/01/2020", OCCUR_TIME="17:00:00", BORO="BROOKLYN",
                 PRECINCT="75", JURISDICTION_CODE="2", **perp("", "M", "")),
        make_row(OCCUR_DATE="02/29/2020", OCCUR_TIME="00:15:00", BORO="BRONX",
                 PRECINCT="44", **perp("UNKNOWN", "UNKNOWN", "UNKNOWN")),
        make_row(OCCUR_DATE="10/10/2018", OCCUR_TIME="20:59:59", BORO="QUEENS",
                 PRECINCT="105", STATISTICAL_MURDER_FLAG="true", **perp("<18", "F", "WHITE HISPANIC")),
    ]


@pytest.fixture
def raw_df(sample_rows):
    return read_incidents(to_csv_bytes(sample_rows))


@pytest.fixture
def clean_df(raw_df):
    return clean_incidents(raw_df)


@pytest.fixture
def csv_path(tmp_path, sample_rows):
    path = tmp_path / "shootings.csv"
    path.write_bytes(to_csv_bytes(sample_rows))
    return path


@pytest.fixture
def modelling_csv_path(tmp_path):
    """40 rows, two boroughs crossed with an afternoon and a night hour."""
    rows = []
    for i in range(40):
        present = i % 5 != 0
        rows.append(make_row(
            OCCUR_DATE=f"{i % 12 + 1:02d}/15/2021",
            OCCUR_TIME="14:00:00" if (i // 2) % 2 == 0 else "23:00:00",
            BORO="BRONX" if i % 2 == 0 else "QUEENS",
            **(perp("25-44", "M", "BLACK") if present else perp("", "", "")),
        ))
    path = tmp_path / "modelling.csv"
    path.write_bytes(to_csv_bytes(rows))
    return path


@pytest.fixture
def planted_df():
    """
    100 rows, 50/50 over two boroughs crossed with Afternoon/Night.
    Perpetrator info is present for 90% of Afternoon rows and 10% of Night rows.
    """
    records = []
    seen = {"Afternoon": 0, "Night": 0}
    for i in range(100):
        tod = "Afternoon" if (i // 2) % 2 == 0 else "Night"
        k = seen[tod]
        seen[tod] += 1
        present = k < 45 if tod == "Afternoon" else k < 5
        records.append({
            "BORO": "BRONX" if i % 2 == 0 else "QUEENS",
            "TimeOfDay": tod,
            "PerpInfoPresent": present,
        })
    df = pd.DataFrame.from_records(records)
    df["TimeOfDay"] = df["TimeOfDay"].astype(TIME_OF_DAY_DTYPE)
    df["BORO"] = pd.Categorical(df["BORO"])
    return df
