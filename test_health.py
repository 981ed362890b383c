def test_health_reports_database_and_counts(client, make_book):
    make_book(isbn="H1", copies=1)

    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["database"] == "connected"
    assert body["total_books"] == 1
    assert body["total_students"] == 0
