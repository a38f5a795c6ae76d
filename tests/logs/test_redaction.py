from core.logging_config import redact_sensitive


def test_redacts_nested_secrets_and_keeps_the_rest():
    event = {
        "event": "affirm_request",
        "path": "charges",
        "payload": {"checkout_token": "tok_1", "order_id": "1001", "items": [{"nonce": "n1", "sku": "A"}]},
        "private_key": "sk_live",
    }

    out = redact_sensitive(None, "debug", event)

    assert out["event"] == "affirm_request"
    assert out["private_key"] == "***"
    assert out["payload"]["checkout_token"] == "***"
    assert out["payload"]["order_id"] == "1001"
    assert out["payload"]["items"][0] == {"nonce": "***", "sku": "A"}


def test_header_names_are_matched_case_insensitively():
    out = redact_sensitive(None, "info", {"event": "x", "X-Admin-Token": "secret"})
    assert out["X-Admin-Token"] == "***"


def test_checkout_query_parameters_are_masked_in_access_logs():
    from api.middleware.logging import sanitize_query

    out = sanitize_query({"action": "complete_checkout", "order_id": "1001", "order_key": "k", "nonce": "n", "key": "k2"})

    assert out == {"action": "complete_checkout", "order_id": "1001", "order_key": "***", "nonce": "***", "key": "***"}
