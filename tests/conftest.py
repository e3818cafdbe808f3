"""
Shared fixtures and HTTP fakes for the nse_chain tests.

Usage:
    Fixtures are available to every test module. The fake HTTP classes can
    be imported directly: ``from conftest import FakeHttp, FakeResponse``.
"""
import copy
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from nse_chain.session_client import LANDING_URL


# =============================================================================
# Option-chain payload
# =============================================================================

def _leg(oi, change_oi, ltp, volume):
    return {
        "openInterest": oi,
        "changeinOpenInterest": change_oi,
        "lastPrice": ltp,
        "totalTradedVolume": volume,
    }


SAMPLE_PAYLOAD = {
    "records": {
        "expiryDates": ["01-Jun-2023", "08-Jun-2023"],
        "timestamp": "26-May-2023 15:30:00",
        "underlyingValue": 43582.1,
    },
    "filtered": {
        "data": [
            {
                "expiryDate": "01-Jun-2023",
                "strikePrice": 43400,
                "CE": _leg(100, 10, 300.5, 1000),
                "PE": _leg(500, 50, 80.0, 3000),
            },
            {
                "expiryDate": "01-Jun-2023",
                "strikePrice": 43500,
                "CE": _leg(200, 20, 250.0, 2000),
                "PE": _leg(400, -10, 100.0, 2500),
            },
            {
                "expiryDate": "01-Jun-2023",
                "strikePrice": 43600,
                "CE": _leg(900, 300, 200.0, 9000),
                "PE": _leg(300, 30, 150.0, 2000),
            },
            {
                "expiryDate": "01-Jun-2023",
                "strikePrice": 43700,
                "CE": _leg(700, 150, 150.0, 5000),
                "PE": _leg(100, 5, 210.0, 500),
            },
            {
                "expiryDate": "01-Jun-2023",
                "strikePrice": 43800,
                "CE": _leg(600, -20, 100.0, 4000),
            },
            {
                "expiryDate": "08-Jun-2023",
                "strikePrice": 43600,
                "CE": _leg(50, 5, 400.0, 100),
                "PE": _leg(60, 6, 350.0, 120),
            },
        ]
    },
}


@pytest.fixture
def sample_payload():
    """Fresh deep copy of the BANKNIFTY sample payload (5 strikes for 01-Jun-2023)."""
    return copy.deepcopy(SAMPLE_PAYLOAD)


@pytest.fixture
def sample_body(sample_payload):
    return json.dumps(sample_payload).encode("utf-8")


# =============================================================================
# Participant OI file
# =============================================================================

SAMPLE_PARTICIPANT_CSV = (
    '"Participant wise Open Interest (no. of contracts) in Equity Derivatives as on Jun 01, 2023"\n'
    "Client Type,Future Index Long,Future Index Short,Future Stock Long,Future Stock Short\t,"
    "Option Index Call Long,Option Index Put Long,Option Index Call Short,Option Index Put Short,"
    "Option Stock Call Long,Option Stock Put Long,Option Stock Call Short,Option Stock Put Short,"
    "Total Long Contracts\t,Total Short Contracts\t\n"
    "Client,200,100,10,20,900,800,700,600,5,6,7,8,2648,2141\n"
    "DII,1000,200,30,40,0,10,0,0,1,2,3,4,1043,247\n"
    "FII,3000,1000,50,60,500,700,200,300,9,8,7,6,4267,1573\n"
    "Pro,400,600,70,80,100,50,150,20,4,3,2,1,627,853\n"
    "TOTAL,4600,1900,160,200,1500,1560,1050,920,19,19,19,19,8585,4814\n"
)


@pytest.fixture
def participant_csv():
    return SAMPLE_PARTICIPANT_CSV


# =============================================================================
# HTTP fakes
# =============================================================================

class FakeRaw:
    def __init__(self, body: bytes, error: Exception | None = None):
        self.body = body
        self.error = error

    def read(self, decode_content=True):
        if self.error is not None:
            raise self.error
        return self.body


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, status_code=200, body=b"", headers=None, cookies=None, raw_error=None):
        self.status_code = status_code
        self.headers = headers or {}
        self.cookies = cookies or {}
        self.raw = FakeRaw(body, raw_error)
        self.closed = False

    def close(self):
        self.closed = True


class FakeHttp:
    """Scripted ``requests.Session`` replacement.

    Landing-page requests get ``landing`` (or raise ``landing_error``); every
    other GET pops the next scripted response, raising it if it is an exception.
    """

    def __init__(self, responses=None, landing=None, landing_error=None):
        self.responses = list(responses or [])
        self.landing = landing or FakeResponse(cookies={"nsit": "abc", "nseappid": "xyz"})
        self.landing_error = landing_error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if url == LANDING_URL:
            if self.landing_error is not None:
                raise self.landing_error
            return self.landing
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def landing_calls(self):
        return [call for call in self.calls if call[0] == LANDING_URL]

    @property
    def api_calls(self):
        return [call for call in self.calls if call[0] != LANDING_URL]
