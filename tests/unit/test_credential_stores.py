"""Testes para persistência de credenciais (memória e disco cifrado)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tests.helpers.session import paired_credentials
from zaplink.config.settings import Settings
from zaplink.domain.credentials import SessionCredentials
from zaplink.domain.errors import CredentialCryptoError, CredentialStoreError
from zaplink.infra.credentials import (
    FileCredentialStore,
    InMemoryCredentialStore,
    create_credential_store,
    generate_key,
)


class TestSessionCredentials:
    """Testes para o merge de credentialsUpdated."""

    def test_merge_replaces_creds_and_merges_keys(self) -> None:
        base = paired_credentials()
        merged = base.merged_with({"noiseKey": "new", "keys": {"pre-key": {"2": "k2"}}})

        assert merged.creds["noiseKey"] == "new"
        assert merged.creds["me"] == base.creds["me"]
        assert merged.keys["pre-key"] == {"1": "k1", "2": "k2"}
        # Original intacto
        assert base.keys["pre-key"] == {"1": "k1"}

    def test_identity(self) -> None:
        assert paired_credentials().identity == "5511999990000:1@s.whatsapp.net"
        assert SessionCredentials(session_id="x").identity is None

    def test_transport_payload(self) -> None:
        payload = paired_credentials().as_transport_payload()
        assert set(payload) == {"creds", "keys"}


class TestInMemoryCredentialStore:
    def test_roundtrip_and_clear(self) -> None:
        store = InMemoryCredentialStore()
        assert store.load("default") is None

        store.save(paired_credentials())
        assert store.exists("default") is True
        assert store.load("default").creds["noiseKey"] == "abc"

        assert store.clear("default") is True
        assert store.clear("default") is False
        assert store.load("default") is None

    def test_load_returns_copy(self) -> None:
        store = InMemoryCredentialStore()
        store.save(paired_credentials())
        loaded = store.load("default")
        loaded.creds["noiseKey"] = "mutated"
        assert store.load("default").creds["noiseKey"] == "abc"


class TestFileCredentialStore:
    """Testes para FileCredentialStore (layout por diretório de sessão)."""

    def test_missing_directory_means_fresh_pairing(self, tmp_path: Path) -> None:
        store = FileCredentialStore(tmp_path)
        assert store.load("default") is None
        assert store.exists("default") is False

    def test_layout_one_file_per_key_category(self, tmp_path: Path) -> None:
        store = FileCredentialStore(tmp_path)
        store.save(paired_credentials())

        session_dir = tmp_path / "default"
        assert (session_dir / "creds.json").is_file()
        assert (session_dir / "keys-pre-key.json").is_file()
        assert json.loads((session_dir / "creds.json").read_text())["noiseKey"] == "abc"

    def test_roundtrip(self, tmp_path: Path) -> None:
        store = FileCredentialStore(tmp_path)
        store.save(paired_credentials())
        loaded = store.load("default")
        assert loaded is not None
        assert loaded.creds == paired_credentials().creds
        assert loaded.keys == {"pre-key": {"1": "k1"}}

    def test_stale_key_files_removed(self, tmp_path: Path) -> None:
        store = FileCredentialStore(tmp_path)
        creds = paired_credentials()
        store.save(creds.model_copy(update={"keys": {"a": {"1": "x"}, "b": {"2": "y"}}}))
        store.save(creds.model_copy(update={"keys": {"a": {"1": "x"}}}))
        assert not (tmp_path / "default" / "keys-b.json").exists()

    def test_clear_removes_directory_recursively(self, tmp_path: Path) -> None:
        store = FileCredentialStore(tmp_path)
        store.save(paired_credentials())
        assert store.clear("default") is True
        assert not (tmp_path / "default").exists()
        assert store.clear("default") is False

    def test_corrupt_file_raises(self, tmp_path: Path) -> None:
        session_dir = tmp_path / "default"
        session_dir.mkdir()
        (session_dir / "creds.json").write_text("{not json")
        with pytest.raises(CredentialStoreError):
            FileCredentialStore(tmp_path).load("default")

    def test_invalid_category_rejected(self, tmp_path: Path) -> None:
        store = FileCredentialStore(tmp_path)
        creds = paired_credentials().model_copy(update={"keys": {"../evil": {}}})
        with pytest.raises(CredentialStoreError):
            store.save(creds)

    def test_encrypted_files_are_not_plaintext(self, tmp_path: Path) -> None:
        store = FileCredentialStore(tmp_path, encryption_key=generate_key())
        store.save(paired_credentials())

        raw = (tmp_path / "default" / "creds.json").read_text()
        assert "noiseKey" not in raw
        assert store.encrypted is True
        assert store.load("default").creds["noiseKey"] == "abc"

    def test_wrong_key_raises_crypto_error(self, tmp_path: Path) -> None:
        FileCredentialStore(tmp_path, encryption_key=generate_key()).save(paired_credentials())
        with pytest.raises(CredentialCryptoError):
            FileCredentialStore(tmp_path, encryption_key=generate_key()).load("default")

    def test_encrypted_without_key_raises(self, tmp_path: Path) -> None:
        FileCredentialStore(tmp_path, encryption_key=generate_key()).save(paired_credentials())
        with pytest.raises(CredentialStoreError, match="no credentials key"):
            FileCredentialStore(tmp_path).load("default")

    def test_swapped_files_fail_authentication(self, tmp_path: Path) -> None:
        """AAD vincula o ciphertext ao nome do arquivo."""
        key = generate_key()
        store = FileCredentialStore(tmp_path, encryption_key=key)
        store.save(paired_credentials())
        session_dir = tmp_path / "default"
        (session_dir / "creds.json").write_text((session_dir / "keys-pre-key.json").read_text())
        with pytest.raises(CredentialCryptoError):
            store.load("default")

    def test_plaintext_accepted_when_key_configured(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        FileCredentialStore(tmp_path).save(paired_credentials())
        store = FileCredentialStore(tmp_path, encryption_key=generate_key())
        with caplog.at_level("WARNING"):
            loaded = store.load("default")
        assert loaded.creds["noiseKey"] == "abc"
        assert "Plaintext credentials file found" in caplog.text

    def test_location_is_session_directory(self, tmp_path: Path) -> None:
        assert FileCredentialStore(tmp_path).location("abc") == str(tmp_path / "abc")


class TestCreateCredentialStore:
    def test_memory_backend(self) -> None:
        store = create_credential_store(Settings(credential_store_backend="memory"))
        assert isinstance(store, InMemoryCredentialStore)

    def test_file_backend(self, tmp_path: Path) -> None:
        store = create_credential_store(
            Settings(credential_store_backend="file", session_root_dir=str(tmp_path))
        )
        assert isinstance(store, FileCredentialStore)
        assert store.encrypted is False

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="não reconhecido"):
            create_credential_store(Settings(credential_store_backend="s3"))
