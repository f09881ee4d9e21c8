"""Test the /api/recuerdos endpoints end to end with a fake object store."""

from io import BytesIO

import pytest
from conftest import JPEG_BYTES, PNG_BYTES
from fastapi import UploadFile

from recuerdos.api.memories import _read_photo


def _create(client, headers, titulo="Playa 2023", fecha="2023-07-01", foto=("playa.jpg", JPEG_BYTES, "image/jpeg"), **extra):
    data = {"titulo": titulo, "fecha": fecha, **extra}
    files = {"foto": foto} if foto else None
    return client.post("/api/recuerdos", data=data, files=files, headers=headers)


@pytest.fixture
def ana(register_and_login):
    return register_and_login("ana", "pw1")


@pytest.fixture
def luis(register_and_login):
    return register_and_login("luis", "pw2")


class TestScenario:
    def test_create_then_filter_by_year(self, client, ana):
        response = _create(client, ana)
        assert response.status_code == 201
        memory_id = response.json()["id"]

        response = client.get("/api/recuerdos", params={"year": 2023}, headers=ana)
        assert response.status_code == 200
        assert memory_id in [item["id"] for item in response.json()]

        response = client.get("/api/recuerdos", params={"year": 2022}, headers=ana)
        assert response.json() == []

    def test_round_trip(self, client, storage, ana):
        response = _create(client, ana, descripcion="con amigos")
        created = response.json()
        assert created["message"]
        assert created["titulo"] == "Playa 2023"
        assert created["descripcion"] == "con amigos"
        assert created["fecha"] == "2023-07-01"

        response = client.get(f"/api/recuerdos/{created['id']}", headers=ana)
        assert response.status_code == 200
        fetched = response.json()
        assert fetched["titulo"] == "Playa 2023"
        assert fetched["descripcion"] == "con amigos"
        assert fetched["fecha"] == "2023-07-01"
        assert fetched["url_foto"] == created["url_foto"]
        assert fetched["url_foto"].startswith("https://storage.test/recuerdos/recuerdos/")
        assert "public_id" not in fetched
        assert "photo_storage_key" not in fetched

    def test_empty_filters_are_ignored(self, client, ana):
        _create(client, ana)

        response = client.get("/api/recuerdos?search=&year=&month=&order=", headers=ana)

        assert response.status_code == 200
        assert len(response.json()) == 1

    def test_invalid_month_is_rejected(self, client, ana):
        response = client.get("/api/recuerdos", params={"month": 13}, headers=ana)

        assert response.status_code == 400


class TestCreateValidation:
    def test_without_photo_fails_and_writes_nothing(self, client, storage, ana):
        response = _create(client, ana, foto=None)

        assert response.status_code == 400
        assert response.json() == {"error": "La foto es obligatoria"}
        assert storage.uploaded == []
        assert client.get("/api/recuerdos", headers=ana).json() == []

    def test_without_title_fails(self, client, storage, ana):
        response = _create(client, ana, titulo="")

        assert response.status_code == 400
        assert storage.uploaded == []

    def test_without_date_fails(self, client, ana):
        response = client.post(
            "/api/recuerdos",
            data={"titulo": "Sin fecha"},
            files={"foto": ("playa.jpg", JPEG_BYTES, "image/jpeg")},
            headers=ana,
        )

        assert response.status_code == 400

    def test_oversized_photo_fails(self, client, ana):
        response = _create(client, ana, foto=("grande.jpg", JPEG_BYTES + b"\x00" * 2048, "image/jpeg"))

        assert response.status_code == 400

    def test_storage_failure_is_reported(self, client, storage, ana):
        storage.fail_uploads = True

        response = _create(client, ana)

        assert response.status_code == 500
        assert response.json() == {"error": "Error al subir imagen"}
        assert client.get("/api/recuerdos", headers=ana).json() == []


class TestOwnerIsolation:
    def test_other_user_gets_not_found(self, client, storage, ana, luis):
        memory_id = _create(client, ana).json()["id"]

        get_response = client.get(f"/api/recuerdos/{memory_id}", headers=luis)
        put_response = client.put(
            f"/api/recuerdos/{memory_id}",
            data={"titulo": "Robado"},
            files={"foto": ("x.png", PNG_BYTES, "image/png")},
            headers=luis,
        )
        delete_response = client.delete(f"/api/recuerdos/{memory_id}", headers=luis)

        for response in (get_response, put_response, delete_response):
            assert response.status_code == 404
            assert "Playa" not in response.text

        fetched = client.get(f"/api/recuerdos/{memory_id}", headers=ana).json()
        assert fetched["titulo"] == "Playa 2023"
        assert len(storage.uploaded) == 1

    def test_listing_only_shows_own_memories(self, client, ana, luis):
        _create(client, ana, titulo="Playa de Ana")
        _create(client, luis, titulo="Playa de Luis", fecha="2022-07-01")

        for params in ({}, {"search": "playa"}, {"year": 2022}, {"month": 7}, {"order": "antiguo"}):
            titles = [item["titulo"] for item in client.get("/api/recuerdos", params=params, headers=ana).json()]
            assert "Playa de Luis" not in titles

    def test_unknown_and_malformed_ids_are_not_found(self, client, ana):
        assert client.get("/api/recuerdos/999", headers=ana).status_code == 404
        assert client.get("/api/recuerdos/abc", headers=ana).status_code == 404
        assert client.delete("/api/recuerdos/-1", headers=ana).status_code == 404


class TestUpdateAndDelete:
    def test_update_fields_without_photo(self, client, storage, ana):
        created = _create(client, ana).json()

        response = client.put(
            f"/api/recuerdos/{created['id']}",
            data={"titulo": "Playa 2024", "descripcion": "otra vez", "fecha": "2024-07-02"},
            headers=ana,
        )

        assert response.status_code == 200
        assert response.json()["message"]
        fetched = client.get(f"/api/recuerdos/{created['id']}", headers=ana).json()
        assert fetched["titulo"] == "Playa 2024"
        assert fetched["descripcion"] == "otra vez"
        assert fetched["fecha"] == "2024-07-02"
        assert fetched["url_foto"] == created["url_foto"]
        assert storage.deleted == []

    def test_update_replaces_photo(self, client, storage, ana):
        created = _create(client, ana).json()

        response = client.put(
            f"/api/recuerdos/{created['id']}",
            data={"titulo": "Playa 2023"},
            files={"foto": ("nueva.png", PNG_BYTES, "image/png")},
            headers=ana,
        )

        assert response.status_code == 200
        fetched = client.get(f"/api/recuerdos/{created['id']}", headers=ana).json()
        assert fetched["url_foto"] != created["url_foto"]
        assert len(storage.deleted) == 1
        assert created["url_foto"].endswith(storage.deleted[0])
        assert len(storage.blobs) == 1

    def test_update_with_whitespace_title_is_rejected(self, client, ana):
        created = _create(client, ana).json()

        response = client.put(f"/api/recuerdos/{created['id']}", data={"titulo": "   "}, headers=ana)

        assert response.status_code == 400

    def test_update_with_empty_field_leaves_it_unchanged(self, client, ana):
        created = _create(client, ana).json()

        response = client.put(
            f"/api/recuerdos/{created['id']}",
            data={"titulo": "", "fecha": "2023-08-01"},
            headers=ana,
        )

        assert response.status_code == 200
        fetched = client.get(f"/api/recuerdos/{created['id']}", headers=ana).json()
        assert fetched["titulo"] == "Playa 2023"
        assert fetched["fecha"] == "2023-08-01"

    def test_update_with_empty_description_clears_it(self, client, ana):
        created = _create(client, ana, descripcion="con amigos").json()

        response = client.put(f"/api/recuerdos/{created['id']}", data={"descripcion": ""}, headers=ana)

        assert response.status_code == 200
        fetched = client.get(f"/api/recuerdos/{created['id']}", headers=ana).json()
        assert fetched["descripcion"] is None
        assert fetched["titulo"] == "Playa 2023"

    def test_update_without_description_keeps_it(self, client, ana):
        created = _create(client, ana, descripcion="con amigos").json()

        client.put(f"/api/recuerdos/{created['id']}", data={"titulo": "Playa 2024"}, headers=ana)

        fetched = client.get(f"/api/recuerdos/{created['id']}", headers=ana).json()
        assert fetched["descripcion"] == "con amigos"

    def test_delete(self, client, storage, ana):
        created = _create(client, ana).json()

        response = client.delete(f"/api/recuerdos/{created['id']}", headers=ana)

        assert response.status_code == 200
        assert client.get(f"/api/recuerdos/{created['id']}", headers=ana).status_code == 404
        assert storage.blobs == {}
        assert client.delete(f"/api/recuerdos/{created['id']}", headers=ana).status_code == 404


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


async def test_photo_read_stops_past_the_size_limit():
    upload = UploadFile(file=BytesIO(JPEG_BYTES + b"\x00" * 10_000), filename="grande.jpg")

    photo = await _read_photo(upload, max_bytes=100)

    assert len(photo.data) == 101
