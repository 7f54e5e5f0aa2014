from fastapi.testclient import TestClient


def create_campaign(client: TestClient, **fields):
    body = {"name": "Summer", "redirectMethod": "direct"}
    body.update(fields)
    response = client.post("/api/campaigns", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def create_url(client: TestClient, campaign_id, name="promo", target="https://promo.example.com/", click_limit=100, **fields):
    body = {"name": name, "targetUrl": target, "clickLimit": click_limit}
    body.update(fields)
    response = client.post(f"/api/campaigns/{campaign_id}/urls", json=body)
    assert response.status_code == 201, response.text
    return response.json()


class TestHealth:

    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["docs"] == "/docs"

    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "environment": "test"}


class TestCampaignAPI:
    """Campaign endpoints"""

    def test_create_campaign(self, client: TestClient):
        data = create_campaign(client, customPath="  Summer-Sale ", multiplier=1.5, redirectMethod="http_307")

        assert data["customPath"] == "summer-sale"
        assert data["redirectMethod"] == "http_307"
        assert float(data["multiplier"]) == 1.5
        assert "id" in data

    def test_custom_path_must_be_unique(self, client: TestClient):
        create_campaign(client, customPath="sale")
        response = client.post("/api/campaigns", json={"name": "Other", "customPath": "SALE"})
        assert response.status_code == 400

    def test_invalid_custom_path(self, client: TestClient):
        response = client.post("/api/campaigns", json={"name": "Bad", "customPath": "no spaces!"})
        assert response.status_code == 400
        assert isinstance(response.json()["detail"], list)

    def test_get_campaign_with_urls(self, client: TestClient):
        campaign = create_campaign(client, customPath="with-urls")
        create_url(client, campaign["id"])

        by_id = client.get(f"/api/campaigns/{campaign['id']}")
        by_path = client.get("/api/campaigns/path/WITH-URLS")

        assert by_id.status_code == 200
        assert by_path.status_code == 200
        assert by_id.json()["urls"][0]["name"] == "promo"
        assert by_path.json()["id"] == campaign["id"]

    def test_list_campaigns(self, client: TestClient):
        create_campaign(client, name="One")
        create_campaign(client, name="Two")

        response = client.get("/api/campaigns")
        assert response.status_code == 200
        assert {c["name"] for c in response.json()} == {"One", "Two"}

    def test_unknown_campaign(self, client: TestClient):
        response = client.get("/api/campaigns/999")
        assert response.status_code == 404
        assert "detail" in response.json()

    def test_multiplier_update_rescales_urls(self, client: TestClient):
        campaign = create_campaign(client)
        url = create_url(client, campaign["id"], click_limit=10)

        response = client.put(f"/api/campaigns/{campaign['id']}", json={"multiplier": 3})
        assert response.status_code == 200
        assert client.get(f"/api/urls/{url['id']}").json()["clickLimit"] == 30

    def test_delete_campaign_soft_deletes_urls(self, client: TestClient):
        campaign = create_campaign(client)
        url = create_url(client, campaign["id"])

        response = client.delete(f"/api/campaigns/{campaign['id']}")
        assert response.status_code == 204

        assert client.get(f"/api/campaigns/{campaign['id']}").status_code == 404
        data = client.get(f"/api/urls/{url['id']}").json()
        assert data["status"] == "deleted"
        assert data["campaignId"] is None


class TestURLAPI:
    """URL endpoints"""

    def test_create_url_in_campaign(self, client: TestClient):
        campaign = create_campaign(client, multiplier=2)
        data = create_url(client, campaign["id"], click_limit=50)

        assert data["campaignId"] == campaign["id"]
        assert data["clicks"] == 0
        assert data["clickLimit"] == 100
        assert data["originalClickLimit"] == 50
        assert data["status"] == "active"
        assert data["isActive"] is True

    def test_invalid_target_url(self, client: TestClient):
        campaign = create_campaign(client)
        response = client.post(
            f"/api/campaigns/{campaign['id']}/urls",
            json={"name": "bad", "targetUrl": "not-a-valid-url", "clickLimit": 10},
        )
        assert response.status_code == 400

    def test_click_limit_must_be_positive(self, client: TestClient):
        campaign = create_campaign(client)
        response = client.post(
            f"/api/campaigns/{campaign['id']}/urls",
            json={"name": "zero", "targetUrl": "https://zero.example.com/", "clickLimit": 0},
        )
        assert response.status_code == 400

    def test_list_campaign_urls_hides_deleted(self, client: TestClient):
        campaign = create_campaign(client)
        kept = create_url(client, campaign["id"], name="kept")
        gone = create_url(client, campaign["id"], name="gone")
        client.delete(f"/api/urls/{gone['id']}")

        response = client.get(f"/api/campaigns/{campaign['id']}/urls")
        assert response.status_code == 200
        assert [u["id"] for u in response.json()] == [kept["id"]]

    def test_click_limit_is_read_only(self, client: TestClient):
        campaign = create_campaign(client)
        url = create_url(client, campaign["id"])

        response = client.put(f"/api/urls/{url['id']}", json={"clickLimit": 5})
        assert response.status_code == 403

    def test_pause_url(self, client: TestClient):
        campaign = create_campaign(client)
        url = create_url(client, campaign["id"])

        response = client.put(f"/api/urls/{url['id']}", json={"status": "paused"})
        assert response.status_code == 200
        assert response.json()["status"] == "paused"
        assert response.json()["isActive"] is False

    def test_activating_blacklisted_target_rejects(self, client: TestClient):
        campaign = create_campaign(client)
        url = create_url(client, campaign["id"], status="paused")
        client.post("/api/blacklisted-urls", json={"name": "Spam", "targetUrl": "https://promo.example.com/"})

        response = client.put(f"/api/urls/{url['id']}", json={"status": "active"})
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"

    def test_rename_to_taken_name_is_refused(self, client: TestClient):
        campaign = create_campaign(client)
        create_url(client, campaign["id"], name="X")
        other = create_url(client, campaign["id"], name="Y")

        response = client.put(f"/api/urls/{other['id']}", json={"name": "X"})
        assert response.status_code == 400
        assert client.get(f"/api/urls/{other['id']}").json()["name"] == "Y"

        live = [u for u in client.get("/api/urls", params={"search": "X", "status": "all"}).json()["urls"]
                if u["name"] == "X" and u["status"] != "rejected"]
        assert len(live) == 1

    def test_reactivating_rejected_duplicate_is_refused(self, client: TestClient):
        campaign = create_campaign(client)
        create_url(client, campaign["id"], name="X")
        duplicate = create_url(client, campaign["id"], name="X")
        assert duplicate["status"] == "rejected"

        assert client.put(f"/api/urls/{duplicate['id']}", json={"status": "active"}).status_code == 400
        assert client.put(f"/api/urls/{duplicate['id']}", json={"name": "X2", "status": "active"}).json()["status"] == "active"

    def test_list_urls_with_filters(self, client: TestClient):
        campaign = create_campaign(client)
        create_url(client, campaign["id"], name="alpha")
        beta = create_url(client, campaign["id"], name="beta")
        client.put(f"/api/urls/{beta['id']}", json={"status": "paused"})

        paused = client.get("/api/urls", params={"status": "paused"}).json()
        searched = client.get("/api/urls", params={"search": "alp", "status": "all"}).json()

        assert [u["name"] for u in paused["urls"]] == ["beta"]
        assert paused["pagination"]["total"] == 1
        assert [u["name"] for u in searched["urls"]] == ["alpha"]

    def test_invalid_status_filter(self, client: TestClient):
        assert client.get("/api/urls", params={"status": "bogus"}).status_code == 400

    def test_pagination(self, client: TestClient):
        campaign = create_campaign(client)
        for i in range(5):
            create_url(client, campaign["id"], name=f"url-{i}")

        data = client.get("/api/urls", params={"page": 2, "limit": 2}).json()
        assert len(data["urls"]) == 2
        assert data["pagination"]["totalPages"] == 3

    def test_soft_and_permanent_delete(self, client: TestClient):
        campaign = create_campaign(client)
        url = create_url(client, campaign["id"])

        soft = client.delete(f"/api/urls/{url['id']}")
        assert soft.status_code == 200
        assert soft.json()["status"] == "deleted"

        hard = client.delete(f"/api/urls/{url['id']}/permanent")
        assert hard.status_code == 204
        assert client.get(f"/api/urls/{url['id']}").status_code == 404

    def test_unknown_url(self, client: TestClient):
        assert client.get("/api/urls/12345").status_code == 404
        assert client.put("/api/urls/12345", json={"status": "paused"}).status_code == 404
        assert client.delete("/api/urls/12345").status_code == 404


class TestBulkAPI:

    def test_bulk_pause(self, client: TestClient):
        campaign = create_campaign(client)
        ids = [create_url(client, campaign["id"], name=f"bulk-{i}")["id"] for i in range(3)]

        response = client.post("/api/urls/bulk", json={"ids": ids[:2], "action": "pause"})
        assert response.status_code == 200
        assert response.json() == {"success": True, "action": "pause", "affected": 2}
        assert client.get(f"/api/urls/{ids[2]}").json()["status"] == "active"

    def test_bulk_accepts_url_ids(self, client: TestClient):
        campaign = create_campaign(client)
        url = create_url(client, campaign["id"])

        response = client.post("/api/urls/bulk", json={"urlIds": [url["id"]], "action": "delete"})
        assert response.json()["affected"] == 1
        assert client.get(f"/api/urls/{url['id']}").json()["status"] == "deleted"

    def test_bulk_requires_ids(self, client: TestClient):
        response = client.post("/api/urls/bulk", json={"ids": [], "action": "pause"})
        assert response.status_code == 400

    def test_bulk_activate_skips_blacklisted(self, client: TestClient):
        campaign = create_campaign(client)
        url = create_url(client, campaign["id"], status="paused")
        client.post("/api/blacklisted-urls", json={"name": "Spam", "targetUrl": url["targetUrl"]})

        response = client.post("/api/urls/bulk", json={"ids": [url["id"]], "action": "activate"})
        assert response.status_code == 200
        assert response.json()["success"] is False
        assert client.get(f"/api/urls/{url['id']}").json()["status"] == "paused"

    def test_bulk_permanent_delete(self, client: TestClient):
        campaign = create_campaign(client)
        url = create_url(client, campaign["id"])

        client.post("/api/urls/bulk", json={"ids": [url["id"]], "action": "permanent_delete"})
        assert client.get(f"/api/urls/{url['id']}").status_code == 404


class TestOriginalRecordAPI:
    """Master record endpoints"""

    def test_url_creation_registers_master(self, client: TestClient):
        campaign = create_campaign(client)
        create_url(client, campaign["id"], name="promo", click_limit=100)

        data = client.get("/api/original-url-records").json()
        assert [r["name"] for r in data["records"]] == ["promo"]
        assert data["records"][0]["originalClickLimit"] == 100

    def test_quota_update_pauses_and_propagates(self, client: TestClient):
        campaign = create_campaign(client, multiplier=2)
        url = create_url(client, campaign["id"], name="promo", click_limit=100)
        record = client.get("/api/original-url-records").json()["records"][0]

        response = client.put(f"/api/original-url-records/{record['id']}", json={"originalClickLimit": 150})
        assert response.status_code == 200
        assert response.json()["status"] == "paused"

        synced = client.get(f"/api/urls/{url['id']}").json()
        assert synced["clickLimit"] == 300
        assert synced["originalClickLimit"] == 150
        assert synced["status"] == "paused"

    def test_default_listing_shows_active_only(self, client: TestClient):
        client.post("/api/original-url-records", json={
            "name": "held", "targetUrl": "https://held.example.com/", "originalClickLimit": 5, "status": "paused",
        })
        client.post("/api/original-url-records", json={
            "name": "live", "targetUrl": "https://live.example.com/", "originalClickLimit": 5,
        })

        active = client.get("/api/original-url-records").json()
        everything = client.get("/api/original-url-records", params={"status": "all"}).json()
        assert [r["name"] for r in active["records"]] == ["live"]
        assert everything["pagination"]["total"] == 2

    def test_filter_by_campaign(self, client: TestClient):
        first = create_campaign(client, name="First")
        second = create_campaign(client, name="Second")
        create_url(client, first["id"], name="one")
        create_url(client, second["id"], name="two")

        data = client.get("/api/original-url-records", params={"campaignId": second["id"]}).json()
        assert [r["name"] for r in data["records"]] == ["two"]

    def test_duplicate_name(self, client: TestClient):
        body = {"name": "dup", "targetUrl": "https://dup.example.com/", "originalClickLimit": 5}
        assert client.post("/api/original-url-records", json=body).status_code == 201
        assert client.post("/api/original-url-records", json=body).status_code == 400

    def test_sync_endpoint(self, client: TestClient):
        campaign = create_campaign(client)
        create_url(client, campaign["id"], name="promo")
        record = client.get("/api/original-url-records").json()["records"][0]

        response = client.post(f"/api/original-url-records/{record['id']}/sync")
        assert response.status_code == 200
        assert response.json() == {"success": True, "updatedCount": 0}

    def test_get_and_delete(self, client: TestClient):
        created = client.post("/api/original-url-records", json={
            "name": "temp", "targetUrl": "https://temp.example.com/", "originalClickLimit": 5,
        }).json()

        assert client.get(f"/api/original-url-records/{created['id']}").json()["name"] == "temp"
        assert client.delete(f"/api/original-url-records/{created['id']}").status_code == 204
        assert client.get(f"/api/original-url-records/{created['id']}").status_code == 404

    def test_pause_and_resume(self, client: TestClient):
        campaign = create_campaign(client)
        url = create_url(client, campaign["id"], name="promo")
        record = client.get("/api/original-url-records").json()["records"][0]

        paused = client.post(f"/api/original-url-records/{record['id']}/pause")
        assert paused.json()["status"] == "paused"
        assert client.get(f"/api/urls/{url['id']}").json()["status"] == "paused"

        resumed = client.post(f"/api/original-url-records/{record['id']}/resume")
        assert resumed.json()["status"] == "active"
        assert client.get(f"/api/urls/{url['id']}").json()["status"] == "active"

    def test_resume_leaves_blacklisted_url_rejected(self, client: TestClient):
        client.post("/api/blacklisted-urls", json={"name": "Spam", "targetUrl": "https://spam.example.com/"})
        campaign = create_campaign(client, customPath="deals")
        url = create_url(client, campaign["id"], name="deal", target="https://spam.example.com/", status="active")
        record = client.get("/api/original-url-records", params={"status": "all"}).json()["records"][0]

        resumed = client.post(f"/api/original-url-records/{record['id']}/resume")
        assert resumed.json()["status"] == "active"
        assert client.get(f"/api/urls/{url['id']}").json()["status"] == "rejected"
        assert client.get("/views/deals", follow_redirects=False).status_code == 410


class TestBlacklistAPI:

    def test_crud(self, client: TestClient):
        created = client.post("/api/blacklisted-urls", json={"name": "Spam", "targetUrl": " https://spam.example.com/ "})
        assert created.status_code == 201
        entry = created.json()
        assert entry["targetUrl"] == "https://spam.example.com/"

        assert [e["id"] for e in client.get("/api/blacklisted-urls").json()] == [entry["id"]]

        updated = client.put(f"/api/blacklisted-urls/{entry['id']}", json={"name": "Scam"})
        assert updated.json()["name"] == "Scam"

        assert client.delete(f"/api/blacklisted-urls/{entry['id']}").status_code == 204
        assert client.get(f"/api/blacklisted-urls/{entry['id']}").status_code == 404

    def test_blacklisted_creation_returns_rejected_url(self, client: TestClient):
        client.post("/api/blacklisted-urls", json={"name": "Spam", "targetUrl": "https://spam.example.com/"})
        campaign = create_campaign(client)

        url = create_url(client, campaign["id"], name="deal", target="https://spam.example.com/", status="active")
        assert url["status"] == "rejected"
        assert url["name"] == "Blacklisted{Spam}(deal)"
