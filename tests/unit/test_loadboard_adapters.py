from datetime import date

import pytest

from src.loadboards.adapters.dat import DatAdapter, normalize_match
from src.loadboards.adapters.sylectus import SylectusAdapter, parse_amount
from src.loadboards.models import Lane, Place, Provider, ResultMode, SearchRequest

DAT_MATCH = {
    "matchId": "M-1",
    "availability": {"earliestWhen": "2025-08-04T08:00:00Z"},
    "comments": "No tarps",
    "loadBoardRateInfo": {"nonBookable": {"rateUsd": 2100}},
    "matchingAssetInfo": {
        "origin": {"place": {"city": "Chicago", "stateProv": "IL", "postalCode": "60601"}},
        "destination": {"place": {"city": "Dallas", "stateProv": "TX"}},
        "capacity": {
            "shipment": {
                "maximumWeightPounds": 42000,
                "fullPartial": "FULL",
                "maximumLengthFeet": 53,
            }
        },
        "equipmentType": "V",
    },
    "originDeadheadMiles": {"miles": 12},
    "tripLength": {"miles": 925},
    "posterInfo": {
        "companyName": "Big Freight",
        "contact": {"phone": "555-0100", "email": "ops@bigfreight.test"},
        "credit": {"creditScore": 97, "daysToPay": 28},
    },
    "postersReferenceId": "BF-9",
}


def dat_response(matches, **extra):
    return {
        "success": True,
        "searchId": "LLF6RT29",
        "rawResponse": {
            "data": {
                "createAssetAndGetMatches": {
                    "assetMatchesBody": {"matches": matches, "matchCounts": {"totalCount": 40}}
                }
            }
        },
        **extra,
    }


@pytest.fixture
def request_():
    return SearchRequest(
        origin=Place(city="Chicago", state="IL", zip="60601"),
        destination=Place(city="Dallas", state="TX"),
        start_date=date(2025, 8, 4),
        end_date=date(2025, 8, 6),
        weight_pounds=40000,
    )


class TestDatAdapter:
    def test_build_search_data(self, request_):
        data = DatAdapter(None).build_search_data(request_).to_wire()
        assert data["origin"] == "Chicago, IL"
        assert data["destination"] == "Dallas, TX"
        assert data["startDate"] == "2025-08-04"
        assert data["endDate"] == "2025-08-06"
        assert data["searchModuleId"] == request_.search_module_id

    def test_normalize_match(self):
        load = normalize_match(DAT_MATCH, "SM_1_abcdef")
        assert load.id == "M-1"
        assert load.posted_at == "2025-08-04T08:00:00Z"
        assert load.origin.city == "Chicago" and load.origin.zip == "60601"
        assert load.destination.state == "TX"
        assert load.contact.company == "Big Freight"
        assert load.contact.phone == "555-0100"
        assert load.rate == 2100.0
        assert load.miles == 925
        assert load.weight == 42000
        assert load.full_partial == "FULL"
        assert load.deadhead_miles == 12
        assert load.credit_score == 97
        assert load.ref_no == "BF-9"
        assert load.source == Provider.DAT
        assert load.to_wire()["lengthFeet"] == 53

    @pytest.mark.asyncio
    async def test_extension_success(self, transport, extension, request_):
        extension.handlers["DAT_SEARCH"] = dat_response([DAT_MATCH, {"broken": True}])
        adapter = DatAdapter(transport)

        result = await adapter.search(request_)

        assert result.success is True
        assert result.data.mode == ResultMode.EXTENSION
        assert result.data.search_module_id == request_.search_module_id
        assert result.data.query_id == "LLF6RT29"
        assert [load.id for load in result.data.loads] == ["M-1"]
        sent = extension.requests_of("DAT_SEARCH")[0]
        assert sent["params"]["origin"] == "Chicago, IL"
        assert sent["params"]["searchModuleId"] == request_.search_module_id

    @pytest.mark.asyncio
    async def test_query_id_fallback_keys(self, transport, extension, request_):
        extension.handlers["DAT_SEARCH"] = {"success": True, "datQueryId": "Q-2", "loads": []}

        result = await DatAdapter(transport).search(request_)

        assert result.data.query_id == "Q-2"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reply",
        [None, {"success": False}, {"error": "DAT tab not found"}],
        ids=["timeout", "not-success", "error"],
    )
    async def test_failures_fall_back_to_simulation(self, transport, extension, request_, reply):
        extension.handlers["DAT_SEARCH"] = reply

        result = await DatAdapter(transport, simulation_delay_s=0).search(request_)

        assert result.success is True
        assert result.data.mode == ResultMode.SIMULATION
        assert result.data.loads == []
        assert result.data.query_id.startswith("mock_")
        assert result.data.search_module_id == request_.search_module_id
        assert "simulated" in result.message

    @pytest.mark.asyncio
    async def test_no_transport_simulates(self, request_):
        result = await DatAdapter(None).search(request_)
        assert result.data.mode == ResultMode.SIMULATION

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_failed_result(self, transport, extension, request_):
        extension.handlers["DAT_SEARCH"] = dat_response([])
        adapter = DatAdapter(transport)

        def explode(*_):
            raise RuntimeError("parser bug")

        adapter.parse_response = explode

        result = await adapter.search(request_)

        assert result.success is False
        assert result.message == "Failed to search on DAT: parser bug"

    @pytest.mark.asyncio
    async def test_refresh_sends_query_id(self, transport, extension):
        extension.handlers["DAT_SEARCH"] = {"success": True, "searchId": "LLF6RT29"}
        lane = Lane(
            id="SM_1_aaaaaa",
            origin=Place(city="Chicago", state="IL"),
            destination=Place(city="Dallas", state="TX"),
            date_range=("2025-08-04", "2025-08-06"),
            dat_query_id="LLF6RT29",
            dat_search_module_id="SM_1_aaaaaa",
        )

        result = await DatAdapter(transport).refresh(lane)

        assert result.success is True
        assert result.data.mode == ResultMode.EXTENSION
        assert result.search_module_id == "SM_1_aaaaaa"

        params = extension.requests_of("DAT_SEARCH")[0]["params"]
        assert params["isRefresh"] is True
        assert params["datQueryId"] == "LLF6RT29"
        assert params["searchModuleId"] == "SM_1_aaaaaa"


SYLECTUS_HTML = """
<table>
<tr>
  <td><a href="/profile.asp?id=1">Road Runner Inc</a></td>
  <td>R-1<br><a href="/view.asp?postingid=P100">P100</a></td>
  <td>Truckload<br>MC 12345</td>
  <td><font color="red"><b>$900</b></font></td>
  <td>Chicago, IL 60601</td>
  <td>Dallas, TX 75201</td>
  <td>08/04/2025 14:00<br>08/05/2025 09:00</td>
  <td>08/03/2025 10:00<br>08/06/2025 10:00</td>
  <td>CARGO VAN<br>925</td>
  <td>Pcs<br>2</td>
  <td>Wt<br>800</td>
</tr>
<tr><td colspan="11">12 record(s) found</td></tr>
</table>
"""


class TestSylectusAdapter:
    def test_params(self, request_):
        params = SylectusAdapter(None).build_params(request_).to_wire()
        assert params["fromCity"] == "chicago"
        assert params["fromState"] == "IL"
        assert params["toCity"] == "Dallas"
        assert params["miles"] == 120
        assert params["freight"] == "Both"
        assert params["refreshRate"] == 300
        assert params["fromDate"] == "2025-08-04"

    def test_parse_amount(self):
        assert parse_amount("$1,250.50") == 1250.5
        assert parse_amount("Call") == 0.0

    @pytest.mark.asyncio
    async def test_html_response_is_extracted(self, transport, extension, request_):
        extension.handlers["SYLECTUS_SEARCH"] = {"success": True, "html": SYLECTUS_HTML}

        result = await SylectusAdapter(transport).search(request_)

        assert result.success is True
        payload = result.data
        assert payload.provider == Provider.SYLECTUS
        assert payload.total_records == 12
        assert len(payload.loads) == 1
        load = payload.loads[0]
        assert load.id == "P100"
        assert load.rate == 900.0
        assert load.origin.zip == "60601"
        assert load.source == Provider.SYLECTUS
        assert load.search_module_id == request_.search_module_id
        assert "html" not in payload.raw
        assert payload.to_wire()["sylectusLoads"][0]["brokerMC"] == "12345"

    @pytest.mark.asyncio
    async def test_pre_extracted_loads_and_count_fallback(self, transport, extension, request_):
        extension.handlers["SYLECTUS_SEARCH"] = {
            "success": True,
            "loads": [{"id": "X1", "miles": 10}, {"id": "X2"}, {"bad": "no id"}],
        }

        result = await SylectusAdapter(transport).search(request_)

        assert [load.id for load in result.data.loads] == ["X1", "X2"]
        assert result.data.total_records == 2

    @pytest.mark.asyncio
    async def test_timeout_falls_back_to_simulation(self, transport, extension, request_):
        extension.handlers["SYLECTUS_SEARCH"] = None

        result = await SylectusAdapter(transport, simulation_delay_s=0).search(request_)

        assert result.success is True
        assert result.data.mode == ResultMode.SIMULATION
        assert result.message == "Search executed successfully on SYLECTUS (simulated)"


@pytest.mark.asyncio
async def test_sylectus_refresh_is_a_plain_search(transport, extension):
    extension.handlers["SYLECTUS_SEARCH"] = {"success": True}
    lane = Lane(id="SM_2_bbbbbb", origin=Place(city="Reno", state="NV"))

    await SylectusAdapter(transport).refresh(lane)

    params = extension.requests_of("SYLECTUS_SEARCH")[0]["params"]
    assert "isRefresh" not in params
    assert params["fromCity"] == "reno"
