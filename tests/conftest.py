"""
Shared fixtures: small catalog frames shaped like the loader outputs and a
mocked backend client.

Usage:
    pytest tests/ -v
"""

from datetime import date
from unittest.mock import MagicMock

import pandas as pd
import pytest

from stake_dashboard.backend import BackendClient


# --- Frames ---

@pytest.fixture
def wards():
    """Two wards: A (100 members) and B (200 members)."""
    return pd.DataFrame({
        "id": ["a", "b"],
        "name": ["Ward A", "Ward B"],
        "membership_count": [100.0, 200.0],
        "active": [True, True],
    })


@pytest.fixture
def indicators():
    """Catalog with one indicator per aggregation method plus the compound ones."""
    return pd.DataFrame([
        {"id": "att", "slug": "frequencia_sacramental", "display_name": "Attendance",
         "indicator_type": "leading", "aggregation_method": "sum", "responsibility": "Bishopric",
         "order_index": 1.0, "active": True},
        {"id": "avg", "slug": "average_indicator", "display_name": "Average Indicator",
         "indicator_type": "leading", "aggregation_method": "avg", "responsibility": "Clerk",
         "order_index": 2.0, "active": True},
        {"id": "snap", "slug": "membros_retornando_a_igreja", "display_name": "Returning",
         "indicator_type": "lagging", "aggregation_method": "snapshot", "responsibility": "Elders",
         "order_index": 3.0, "active": True},
        {"id": "rec", "slug": "recomendacao_templo_com_investidura", "display_name": "Rec. Endowed",
         "indicator_type": "lagging", "aggregation_method": "snapshot", "responsibility": "Bishopric",
         "order_index": 4.0, "active": True},
        {"id": "rec_sem", "slug": "recomendacao_templo_sem_investidura", "display_name": "Rec. Not Endowed",
         "indicator_type": "lagging", "aggregation_method": "snapshot", "responsibility": "Bishopric",
         "order_index": 5.0, "active": True},
        {"id": "part", "slug": "membros_participantes", "display_name": "Participating",
         "indicator_type": "lagging", "aggregation_method": "snapshot", "responsibility": "Clerk",
         "order_index": 6.0, "active": True},
    ])


def build_observations(rows):
    """rows: iterable of (ward_id, indicator_id, week_start, value)."""
    records = [
        {
            "id": f"o{i}",
            "ward_id": ward_id,
            "indicator_id": indicator_id,
            "value": float(value),
            "week_start": pd.Timestamp(week),
            "created_at": pd.Timestamp(week) + pd.Timedelta(days=1),
            "created_by": "u1",
        }
        for i, (ward_id, indicator_id, week, value) in enumerate(rows, start=1)
    ]
    columns = ["id", "ward_id", "indicator_id", "value", "week_start", "created_at", "created_by"]
    df = pd.DataFrame(records, columns=columns)
    df["week_start"] = pd.to_datetime(df["week_start"])
    return df


@pytest.fixture
def make_observations():
    return build_observations


@pytest.fixture
def empty_observations():
    return build_observations([])


@pytest.fixture
def today():
    """A fixed Wednesday."""
    return date(2026, 3, 18)


# --- Backend ---

@pytest.fixture
def mock_client():
    """MagicMock standing in for a signed-in BackendClient."""
    client = MagicMock(spec=BackendClient)
    client.user_id = "user-1"
    client.is_authenticated = True
    client.insert.return_value = [{"id": "new"}]
    client.update.return_value = []
    client.select.return_value = []
    client.select_with_count.return_value = ([], 0)
    client.rpc.return_value = []
    return client


@pytest.fixture
def http_response():
    """Factory for requests-like response mocks."""
    def _make(status=200, json_body=None, text="", headers=None):
        response = MagicMock()
        response.status_code = status
        response.headers = headers or {}
        response.reason = "Error" if status >= 400 else "OK"
        if json_body is not None:
            response.json.return_value = json_body
            response.content = b"x"
            response.text = text or str(json_body)
        else:
            response.json.side_effect = ValueError("no json")
            response.content = text.encode()
            response.text = text
        return response
    return _make
