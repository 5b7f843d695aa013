"""
Tests des routes API (classifieur, consoles, matchs, santé)
"""

import asyncio

import pytest

API = "/api/crucible"


async def _create_device(client, **overrides):
    body = {"device_name": "Living Room PS5", **overrides}
    response = await client.post(f"{API}/devices", json=body)
    assert response.status_code == 201
    return response.json()


async def _start_match(client, device_id, **overrides):
    response = await client.post(f"{API}/matches", json={"device_id": device_id, "game_mode": "control", **overrides})
    assert response.status_code == 201
    return response.json()


def _metric(ts, latency=30.0, **overrides):
    body = {
        "timestamp_ns": 1_700_000_000_000_000_000 + ts * 1_000_000_000,
        "latency_ms": latency,
        "jitter_ms": 3.0,
        "packets_sent": 1000,
        "packets_received": 999,
        "packets_lost": 1,
        "bytes_sent": 60_000,
        "bytes_received": 60_000,
        "bungie_traffic_bytes": 12_000,
        "p2p_traffic_bytes": 96_000,
        "peer_count": 6,
    }
    body.update(overrides)
    return body


class TestClassifierRoutes:
    async def test_rate(self, api_client):
        response = await api_client.post(f"{API}/rate", json={"latency_ms": 160, "packet_loss_percent": 4, "jitter_ms": 60})

        assert response.status_code == 200
        assert response.json() == {"rating": "poor", "score": 30, "label": "Darkness Encroaching"}

    async def test_classify(self, api_client):
        response = await api_client.post(
            f"{API}/classify",
            json={"bytes_per_second": 5_000, "peer_count": 1, "bungie_traffic_percent": 80,
                  "p2p_traffic_percent": 20, "previous_state": "in_match"},
        )

        assert response.status_code == 200
        assert response.json()["state"] == "post_game"
        assert response.json()["label"] == "Fight Complete"

    async def test_classify_rejects_unknown_previous_state(self, api_client):
        response = await api_client.post(
            f"{API}/classify",
            json={"bytes_per_second": 0, "peer_count": 0, "bungie_traffic_percent": 0,
                  "p2p_traffic_percent": 0, "previous_state": "raid"},
        )

        assert response.status_code == 422

    async def test_lag_spike(self, api_client):
        response = await api_client.post(
            f"{API}/lag-spike", json={"current_latency_ms": 160, "rolling_average_latency_ms": 40}
        )

        assert response.json() == {
            "is_spike": True,
            "severity": "warning",
            "description": "Lag spike detected: 160ms (120ms above average)",
        }

    async def test_summary(self, api_client):
        response = await api_client.post(
            f"{API}/summary",
            json={"duration_ms": 600_000, "avg_latency_ms": 25, "max_latency_ms": 40,
                  "packet_loss_percent": 0.1, "avg_jitter_ms": 4, "peer_count": 11, "lag_spike_count": 0},
        )

        data = response.json()
        assert data["overall_rating"] == "excellent"
        assert "Shaxx approves" in data["verdict"]
        assert data["issues"] == []

    async def test_terminology(self, api_client):
        data = (await api_client.get(f"{API}/terminology")).json()

        assert data["matchStates"]["in_match"] == "Shaxx is Watching"
        assert set(data) == {"matchStates", "connectionQuality", "events"}


class TestDeviceRoutes:
    async def test_create_and_list(self, api_client):
        device = await _create_device(api_client, extrahop_device_id=1024)

        listed = (await api_client.get(f"{API}/devices")).json()

        assert device["platform"] == "PS5"
        assert [d["id"] for d in listed] == [device["id"]]

    async def test_create_requires_name(self, api_client):
        response = await api_client.post(f"{API}/devices", json={"device_name": ""})

        assert response.status_code == 422

    async def test_delete(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])

        response = await api_client.delete(f"{API}/devices/{device['id']}")

        assert response.status_code == 204
        assert (await api_client.get(f"{API}/matches/{match['id']}")).status_code == 404
        assert (await api_client.delete(f"{API}/devices/{device['id']}")).status_code == 404


class TestMatchLifecycle:
    async def test_start_match(self, api_client):
        device = await _create_device(api_client)

        match = await _start_match(api_client, device["id"], bungie_server_ip="34.196.10.20")

        assert match["match_state"] == "matchmaking"
        assert match["match_state_label"] == "Searching for Guardians"
        assert match["end_time"] is None

        details = (await api_client.get(f"{API}/matches/{match['id']}")).json()
        assert [e["event_type"] for e in details["events"]] == ["match_start"]
        assert details["events"][0]["description"] == "Match monitoring initiated"
        assert details["summary"] is None

    async def test_start_unknown_device(self, api_client):
        response = await api_client.post(f"{API}/matches", json={"device_id": 999})

        assert response.status_code == 404

    async def test_start_while_active(self, api_client):
        device = await _create_device(api_client)
        await _start_match(api_client, device["id"])

        response = await api_client.post(f"{API}/matches", json={"device_id": device["id"]})

        assert response.status_code == 409

    async def test_record_metrics(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])

        response = await api_client.post(f"{API}/matches/{match['id']}/metrics", json=_metric(0))

        assert response.status_code == 201
        data = response.json()
        assert data["quality"]["rating"] == "excellent"
        assert data["state"]["state"] == "in_match"
        assert data["spike"]["is_spike"] is False
        assert data["rolling_average_ms"] == 30.0
        assert data["event_id"] is None

        updated = (await api_client.get(f"{API}/matches")).json()[0]
        assert updated["match_state"] == "in_match"

    async def test_lag_spike_creates_event(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])
        for ts in range(3):
            await api_client.post(f"{API}/matches/{match['id']}/metrics", json=_metric(ts, latency=40))

        response = await api_client.post(f"{API}/matches/{match['id']}/metrics", json=_metric(3, latency=200))

        data = response.json()
        assert data["spike"]["severity"] == "warning"
        assert data["rolling_average_ms"] == pytest.approx(40)
        assert data["event_id"] is not None

        live = (await api_client.get(f"{API}/matches/{match['id']}/live")).json()
        spikes = [e for e in live["events"] if e["event_type"] == "lag_spike"]
        assert len(spikes) == 1
        assert spikes[0]["id"] == data["event_id"]
        assert spikes[0]["latency_ms"] == 200

    async def test_loss_derived_from_counters(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])

        body = _metric(0, packets_sent=100, packets_lost=4)
        await api_client.post(f"{API}/matches/{match['id']}/metrics", json=body)

        live = (await api_client.get(f"{API}/matches/{match['id']}/live")).json()
        assert live["metrics"][0]["packet_loss_percent"] == pytest.approx(4.0)
        assert live["current_quality"]["score"] == 75

    async def test_out_of_range_metric_is_rejected(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])

        response = await api_client.post(
            f"{API}/matches/{match['id']}/metrics", json=_metric(0, packet_loss_percent=150)
        )

        assert response.status_code == 422
        assert "packet_loss_percent" in response.json()["detail"]

    async def test_metrics_unknown_match(self, api_client):
        response = await api_client.post(f"{API}/matches/999/metrics", json=_metric(0))

        assert response.status_code == 404

    async def test_peers(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])
        url = f"{API}/matches/{match['id']}/peers"

        first = (await api_client.post(url, json={"peer_ip": "81.2.69.160", "geo_city": "London"})).json()
        again = (await api_client.post(url, json={"peer_ip": "81.2.69.160", "isp": "BT"})).json()

        assert first["is_new"] is True
        assert again == {"peer_id": first["peer_id"], "is_new": False}

        details = (await api_client.get(f"{API}/matches/{match['id']}")).json()
        assert len(details["peers"]) == 1
        joined = [e for e in details["events"] if e["event_type"] == "peer_joined"]
        assert len(joined) == 1
        assert joined[0]["description"] == "Guardian connected from London"
        assert joined[0]["affected_peer_ip"] == "81.2.69.160"

    async def test_peer_count_defaults_to_recorded_peers(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])
        for i in range(4):
            await api_client.post(f"{API}/matches/{match['id']}/peers", json={"peer_ip": f"81.2.69.{i}"})

        body = _metric(0)
        del body["peer_count"]
        data = (await api_client.post(f"{API}/matches/{match['id']}/metrics", json=body)).json()

        assert data["state"]["state"] == "in_match"

    async def test_end_match(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])
        for ts in range(5):
            await api_client.post(f"{API}/matches/{match['id']}/metrics", json=_metric(ts))

        response = await api_client.post(f"{API}/matches/{match['id']}/end", json={"result": "victory"})

        assert response.status_code == 200
        data = response.json()
        assert data["match"]["result"] == "victory"
        assert data["match"]["match_state"] == "post_game"
        assert data["match"]["overall_rating"] == "excellent"
        assert data["match"]["packet_loss_percent"] == pytest.approx(0.1)
        assert data["summary"]["overall_rating"] == "excellent"

        details = (await api_client.get(f"{API}/matches/{match['id']}")).json()
        assert details["summary"]["overall_rating"] == "excellent"
        assert details["events"][-1]["description"] == "Match ended: victory"

    async def test_details_summary_matches_the_stored_rating(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])
        body = _metric(0, latency=50.4, jitter_ms=21.0, packet_loss_percent=0.6)
        await api_client.post(f"{API}/matches/{match['id']}/metrics", json=body)

        ended = (await api_client.post(f"{API}/matches/{match['id']}/end", json={"result": "defeat"})).json()
        details = (await api_client.get(f"{API}/matches/{match['id']}")).json()

        assert ended["summary"]["overall_rating"] == "good"
        assert details["match"]["overall_rating"] == "good"
        assert details["match"]["avg_latency_ms"] == pytest.approx(50.4)
        assert details["summary"] == ended["summary"]

    async def test_concurrent_metrics_are_serialized(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])
        url = f"{API}/matches/{match['id']}/metrics"
        lobby = _metric(0)
        leaving = _metric(
            1, peer_count=1, bytes_sent=2_500, bytes_received=2_500,
            bungie_traffic_bytes=0, p2p_traffic_bytes=500,
        )

        first, second = await asyncio.gather(api_client.post(url, json=lobby), api_client.post(url, json=leaving))

        lobby_data, leaving_data = first.json(), second.json()
        assert lobby_data["state"]["state"] == "in_match"
        if lobby_data["metric_id"] < leaving_data["metric_id"]:
            assert leaving_data["state"]["state"] == "post_game"
            last_state = leaving_data["state"]["state"]
        else:
            last_state = lobby_data["state"]["state"]

        updated = (await api_client.get(f"{API}/matches/{match['id']}")).json()["match"]
        assert updated["match_state"] == last_state

    async def test_explicit_loss_wins_over_counters_everywhere(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])
        body = _metric(0, packet_loss_percent=4.0, packets_sent=1000, packets_lost=0)

        recorded = (await api_client.post(f"{API}/matches/{match['id']}/metrics", json=body)).json()
        live = (await api_client.get(f"{API}/matches/{match['id']}/live")).json()
        ended = (await api_client.post(f"{API}/matches/{match['id']}/end")).json()

        assert recorded["quality"]["score"] == 75
        assert live["current_quality"] == recorded["quality"]
        assert ended["match"]["packet_loss_percent"] == pytest.approx(4.0)
        assert ended["summary"]["overall_rating"] == "good"

    async def test_end_without_body(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])

        response = await api_client.post(f"{API}/matches/{match['id']}/end")

        assert response.status_code == 200
        assert response.json()["match"]["result"] == "unknown"

    async def test_ended_match_conflicts(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])
        await api_client.post(f"{API}/matches/{match['id']}/end")

        assert (await api_client.post(f"{API}/matches/{match['id']}/end")).status_code == 409
        assert (await api_client.post(f"{API}/matches/{match['id']}/metrics", json=_metric(0))).status_code == 409

        # A new match can start once the previous one ended
        await _start_match(api_client, device["id"])

    async def test_end_unknown_match(self, api_client):
        assert (await api_client.post(f"{API}/matches/999/end")).status_code == 404

    async def test_live_view(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])
        for ts in range(5):
            await api_client.post(f"{API}/matches/{match['id']}/metrics", json=_metric(ts, latency=30 + ts))

        live = (await api_client.get(f"{API}/matches/{match['id']}/live", params={"limit": 3})).json()

        assert live["match_state"] == "in_match"
        assert live["match_state_label"] == "Shaxx is Watching"
        assert [m["latency_ms"] for m in live["metrics"]] == [32, 33, 34]
        assert live["current_quality"]["rating"] == "excellent"

    async def test_live_view_without_metrics(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])

        live = (await api_client.get(f"{API}/matches/{match['id']}/live")).json()

        assert live["metrics"] == []
        assert live["current_quality"] is None

    async def test_list_matches_limit_validation(self, api_client):
        assert (await api_client.get(f"{API}/matches", params={"limit": 0})).status_code == 422

    async def test_stats(self, api_client):
        device = await _create_device(api_client)
        match = await _start_match(api_client, device["id"])
        await api_client.post(f"{API}/matches/{match['id']}/metrics", json=_metric(0))
        await api_client.post(f"{API}/matches/{match['id']}/end", json={"result": "mercy"})

        stats = (await api_client.get(f"{API}/stats")).json()

        assert stats["total_matches"] == 1
        assert stats["completed_matches"] == 1
        assert stats["results"] == {"mercy": 1}


class TestHealth:
    async def test_health(self, api_client):
        response = await api_client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["polling"] is False
        assert data["active_sessions"] == 0
        assert data["active_matches"] == 0
        assert data["uptime_seconds"] >= 0
