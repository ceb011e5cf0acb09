from batchops.utils.limits import BatchLimits, get_batch_limits, refresh_batch_limits_cache


def test_defaults():
    limits = get_batch_limits()
    assert limits == BatchLimits()
    assert limits.max_items_per_operation == 1000
    assert limits.max_concurrent_operations == 3
    assert limits.max_email_recipients == 500
    assert limits.create_chunk_size == 10
    assert limits.message_chunk_size == 50
    assert limits.max_file_size_bytes == 50 * 1024 * 1024


def test_env_override_needs_refresh(monkeypatch):
    get_batch_limits()
    monkeypatch.setenv("BATCH_MAX_EMAIL_RECIPIENTS", "25")
    assert get_batch_limits().max_email_recipients == 500

    refresh_batch_limits_cache()
    assert get_batch_limits().max_email_recipients == 25


def test_malformed_values_fall_back(monkeypatch):
    monkeypatch.setenv("BATCH_CREATE_CHUNK_SIZE", "lots")
    monkeypatch.setenv("BATCH_MAX_CONCURRENT_OPERATIONS", "0")
    refresh_batch_limits_cache()
    limits = get_batch_limits()
    assert limits.create_chunk_size == 10
    assert limits.max_concurrent_operations == 3
