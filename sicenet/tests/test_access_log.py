from sicenet.middlewares.access_log import mask_secrets


def test_mask_secrets_nested():
    body = {"studentId": "S1", "password": "p", "extra": [{"secret": "s", "ok": 1}]}
    assert mask_secrets(body) == {"studentId": "S1", "password": "***", "extra": [{"secret": "***", "ok": 1}]}


def test_mask_secrets_passes_scalars_through():
    assert mask_secrets("password") == "password"
    assert mask_secrets(None) is None
