# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Integration tests for the manifestation wizard endpoints.
"""

import io
import json
import os
import pytest
from unittest.mock import patch
from PIL import Image

from models.entities import ReverseGeocodeResult
from services.geocoding import GeocodingError
from services.ouvidoria import OuvidoriaAPIError

CLEAN_TEXT = "Poste de iluminação apagado há duas semanas perto da escola."


def _create(client, **fields):
    response = client.post('/api/manifestations', json=fields)
    assert response.status_code == 201
    return json.loads(response.data)


def _post(client, composition_id, action, payload=None):
    url = f'/api/manifestations/{composition_id}/{action}'
    if payload is None:
        return client.post(url)
    return client.post(url, json=payload)


def _upload(client, composition_id, data, filename, mime_type, source=None):
    form = {'file': (io.BytesIO(data), filename, mime_type)}
    if source:
        form['source'] = source
    return client.post(
        f'/api/manifestations/{composition_id}/attachments',
        data=form,
        content_type='multipart/form-data'
    )


def _reviewed(client, **fields):
    """Manifestation walked to the review step anonymously."""
    composition_id = _create(client, content=CLEAN_TEXT, **fields)['id']
    assert _post(client, composition_id, 'review').status_code == 200
    assert _post(client, composition_id, 'identity', {'mode': 'anonymous'}).status_code == 200
    assert _post(client, composition_id, 'confirm-anonymous').status_code == 200
    return composition_id


class TestCreateAndEdit:
    """Test starting and editing a manifestation."""

    def test_create_empty(self, client):
        response = client.post('/api/manifestations')

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['step'] == 'composing'
        assert data['has_content'] is False
        assert response.headers['Location'] == f"/api/manifestations/{data['id']}"
        assert set(data['_links']) == {'self', 'update', 'attach', 'locate', 'review'}
        assert data['_embedded'] == {'attachments': []}

    def test_create_with_fields(self, client):
        data = _create(client, content=CLEAN_TEXT, tags="iluminação, escola", subject_label="Iluminação pública")

        assert data['tags'] == ['iluminação', 'escola']
        assert data['summary'].startswith('Assunto: Iluminação pública')
        assert data['character_count'] == len(CLEAN_TEXT)

    def test_create_rejects_unknown_fields(self, client):
        response = client.post('/api/manifestations', json={'protocol': 'OUV-1'})

        assert response.status_code == 400

    def test_get(self, client):
        composition_id = _create(client, content=CLEAN_TEXT)['id']

        response = client.get(f'/api/manifestations/{composition_id}')

        assert response.status_code == 200
        assert json.loads(response.data)['content'] == CLEAN_TEXT

    def test_get_unknown(self, client):
        response = client.get(f"/api/manifestations/{'f' * 32}")

        assert response.status_code == 404
        assert json.loads(response.data)['type'].endswith('/resource-not-found')

    def test_get_malformed_identifier(self, client):
        response = client.get('/api/manifestations/not-an-id')

        assert response.status_code == 400

    def test_patch(self, client):
        composition_id = _create(client, content="rascunho")['id']

        response = client.patch(
            f'/api/manifestations/{composition_id}',
            json={'content': CLEAN_TEXT, 'administrative_region': 'Ceilândia'}
        )

        data = json.loads(response.data)
        assert response.status_code == 200
        assert data['content'] == CLEAN_TEXT
        assert data['administrative_region'] == 'Ceilândia'

    def test_store_unavailable(self, client, redis_service):
        redis_service.client = None

        response = client.post('/api/manifestations')

        assert response.status_code == 503


class TestLocation:
    """Test picking a location."""

    def test_search_result_label_is_used(self, client, geocoding_service):
        composition_id = _create(client)['id']

        response = _post(client, composition_id, 'location', {
            'lat': -15.79, 'lng': -47.88, 'label': 'Setor Comercial Sul, Brasília'
        })

        data = json.loads(response.data)
        assert data['geo'] == {'lat': -15.79, 'lng': -47.88}
        assert data['administrative_region'] == 'Setor Comercial Sul'
        geocoding_service.reverse.assert_not_called()

    def test_map_click_is_reverse_geocoded(self, client, geocoding_service):
        geocoding_service.reverse.return_value = ReverseGeocodeResult(
            lat=-15.83, lng=-48.05, display_name="Taguatinga, Distrito Federal", admin_region="Taguatinga"
        )
        composition_id = _create(client)['id']

        response = _post(client, composition_id, 'location', {'lat': '-15,83', 'lng': '-48,05'})

        data = json.loads(response.data)
        assert data['administrative_region'] == 'Taguatinga'
        geocoding_service.reverse.assert_called_once_with(-15.83, -48.05)

    def test_geocoder_failure_keeps_coordinates(self, client, geocoding_service):
        geocoding_service.reverse.side_effect = GeocodingError("timeout")
        composition_id = _create(client)['id']

        response = _post(client, composition_id, 'location', {'lat': -15.83, 'lng': -48.05})

        assert response.status_code == 200
        assert json.loads(response.data)['geo'] == {'lat': -15.83, 'lng': -48.05}

    def test_invalid_coordinates(self, client):
        composition_id = _create(client)['id']

        response = _post(client, composition_id, 'location', {'lat': 95, 'lng': 0})

        assert response.status_code == 400


class TestAttachments:
    """Test staging media."""

    def test_upload_photo_is_normalized(self, client, staging, png_bytes):
        composition_id = _create(client)['id']

        response = _upload(client, composition_id, png_bytes, 'buraco.png', 'image/png')

        assert response.status_code == 201
        data = json.loads(response.data)
        attachment = data['_embedded']['attachments'][0]
        assert attachment['filename'] == 'buraco.jpg'
        assert attachment['mime_type'] == 'image/jpeg'
        assert attachment['type'] == 'image'
        assert data['has_content'] is True
        assert data['attachment_counts']['image'] == 1

        stored = staging.read(composition_id, attachment['id'])
        with Image.open(io.BytesIO(stored)) as image:
            assert image.format == 'JPEG'

    def test_camera_capture_gets_generated_name(self, client, png_bytes):
        composition_id = _create(client)['id']

        response = _upload(client, composition_id, png_bytes, 'blob', 'image/png', source='camera')

        filename = json.loads(response.data)['_embedded']['attachments'][0]['filename']
        assert filename.startswith('foto-')
        assert filename.endswith('.jpg')

    def test_recorder_audio(self, client):
        composition_id = _create(client)['id']

        response = _upload(client, composition_id, b'webm-audio', 'blob', 'audio/webm', source='recorder')

        attachment = json.loads(response.data)['_embedded']['attachments'][0]
        assert attachment['type'] == 'audio'
        assert attachment['source'] == 'recorder'
        assert attachment['filename'].startswith('recording-')

    def test_missing_file(self, client):
        composition_id = _create(client)['id']

        response = client.post(
            f'/api/manifestations/{composition_id}/attachments',
            data={'source': 'upload'},
            content_type='multipart/form-data'
        )

        assert response.status_code == 400

    def test_unknown_source(self, client):
        composition_id = _create(client)['id']

        response = _upload(client, composition_id, b'x', 'a.mp4', 'video/mp4', source='scanner')

        assert response.status_code == 400

    def test_unsupported_type(self, client):
        composition_id = _create(client)['id']

        response = _upload(client, composition_id, b'%PDF', 'doc.pdf', 'application/pdf')

        data = json.loads(response.data)
        assert response.status_code == 400
        assert data['errors'][0]['field'] == 'file'

    def test_undecodable_image(self, client):
        composition_id = _create(client)['id']

        response = _upload(client, composition_id, b'not a png', 'a.png', 'image/png')

        assert response.status_code == 400

    def test_too_large(self, client):
        composition_id = _create(client)['id']

        response = _upload(client, composition_id, b'\0' * (1024 * 1024 + 10), 'grande.mp4', 'video/mp4')

        assert response.status_code == 413

    def test_image_with_too_many_pixels(self, client):
        composition_id = _create(client)['id']
        output = io.BytesIO()
        Image.new('1', (100, 100)).save(output, format='PNG')

        with patch.object(Image, 'MAX_IMAGE_PIXELS', 1000):
            response = _upload(client, composition_id, output.getvalue(), 'bomba.png', 'image/png')

        assert response.status_code == 413
        assert json.loads(client.get(f'/api/manifestations/{composition_id}').data)['_embedded']['attachments'] == []

    def test_too_many(self, client):
        composition_id = _create(client)['id']
        for i in range(3):
            assert _upload(client, composition_id, b'audio', f'{i}.ogg', 'audio/ogg').status_code == 201

        response = _upload(client, composition_id, b'audio', '4.ogg', 'audio/ogg')

        assert response.status_code == 409

    def test_remove(self, client, staging):
        composition_id = _create(client)['id']
        data = json.loads(_upload(client, composition_id, b'audio', 'a.ogg', 'audio/ogg').data)
        attachment_id = data['_embedded']['attachments'][0]['id']
        assert data['_links']['remove-attachment'][0]['method'] == 'DELETE'

        response = client.delete(f'/api/manifestations/{composition_id}/attachments/{attachment_id}')

        assert response.status_code == 200
        assert json.loads(response.data)['_embedded']['attachments'] == []
        assert not (staging.root / composition_id / attachment_id).exists()

    def test_editing_keeps_staged_media_fresh(self, client, staging):
        composition_id = _create(client)['id']
        data = json.loads(_upload(client, composition_id, b'audio', 'a.ogg', 'audio/ogg').data)
        attachment_id = data['_embedded']['attachments'][0]['id']
        os.utime(staging.root / composition_id, (1000, 1000))

        response = client.patch(f'/api/manifestations/{composition_id}', json={'content': CLEAN_TEXT})

        assert response.status_code == 200
        assert staging.purge_older_than(86400) == 0
        assert staging.read(composition_id, attachment_id) == b'audio'

    def test_remove_unknown(self, client):
        composition_id = _create(client)['id']

        response = client.delete(f"/api/manifestations/{composition_id}/attachments/{'a' * 32}")

        assert response.status_code == 404

    def test_attach_after_review_is_conflict(self, client):
        composition_id = _reviewed(client)

        response = _upload(client, composition_id, b'audio', 'a.ogg', 'audio/ogg')

        assert response.status_code == 409


class TestSendFlow:
    """Test the wizard transitions over HTTP."""

    def test_review_without_content(self, client):
        composition_id = _create(client)['id']

        response = _post(client, composition_id, 'review')

        assert response.status_code == 400

    def test_sensitive_data_warning(self, client):
        composition_id = _create(client, content="Meu telefone é 61 98765-4321")['id']

        response = _post(client, composition_id, 'review')

        data = json.loads(response.data)
        assert data['step'] == 'sensitive_warning'
        assert data['sensitive_data_types'] == ['Telefone']
        assert set(data['_links']) == {'self', 'continue', 'edit'}

        data = json.loads(_post(client, composition_id, 'continue').data)
        assert data['step'] == 'anonymous_warning'

    def test_identified_flow(self, client):
        composition_id = _create(client, content=CLEAN_TEXT)['id']
        _post(client, composition_id, 'review')

        response = _post(client, composition_id, 'identity', {
            'mode': 'identify', 'contact_name': 'Maria', 'contact_email': 'maria@exemplo.com'
        })

        data = json.loads(response.data)
        assert data['step'] == 'review'
        assert data['contact_email'] == 'maria@exemplo.com'
        assert 'submit' in data['_links']

    def test_edit_from_review(self, client):
        composition_id = _reviewed(client)

        data = json.loads(_post(client, composition_id, 'edit').data)

        assert data['step'] == 'composing'

    def test_out_of_order_transition(self, client):
        composition_id = _create(client, content=CLEAN_TEXT)['id']

        response = _post(client, composition_id, 'confirm-anonymous')

        data = json.loads(response.data)
        assert response.status_code == 409
        assert data['_links']['manifestation']['href'].endswith(f'/api/manifestations/{composition_id}')

    def test_patch_outside_composing(self, client):
        composition_id = _reviewed(client)

        response = client.patch(f'/api/manifestations/{composition_id}', json={'content': 'novo'})

        assert response.status_code == 409


class TestSubmit:
    """Test submission to the ouvidoria API."""

    def test_submit(self, client, ouvidoria_client):
        composition_id = _reviewed(client)

        response = _post(client, composition_id, 'submit')

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['protocol'] == 'OUV-2026-000123'
        assert data['manifestation_id'] == 'm-123'
        assert data['_links']['protocol']['href'].endswith('/api/protocols/OUV-2026-000123')
        ouvidoria_client.submit.assert_called_once_with('m-123')

        stored = json.loads(client.get(f'/api/manifestations/{composition_id}').data)
        assert stored['step'] == 'submitted'
        assert stored['protocol'] == 'OUV-2026-000123'
        assert set(stored['_links']) == {'self', 'protocol'}

    def test_submit_with_attachment_clears_staging(self, client, ouvidoria_client, staging):
        composition_id = _create(client, content=CLEAN_TEXT)['id']
        _upload(client, composition_id, b'voice', 'a.ogg', 'audio/ogg')
        _post(client, composition_id, 'review')
        _post(client, composition_id, 'identity', {'mode': 'anonymous'})
        _post(client, composition_id, 'confirm-anonymous')

        response = _post(client, composition_id, 'submit')

        assert response.status_code == 201
        ouvidoria_client.add_attachments.assert_called_once()
        assert ouvidoria_client.add_attachments.call_args.args[1] == [('a.ogg', b'voice', 'audio/ogg')]
        assert not (staging.root / composition_id).exists()

    def test_submit_twice(self, client):
        composition_id = _reviewed(client)
        _post(client, composition_id, 'submit')

        response = _post(client, composition_id, 'submit')

        assert response.status_code == 409

    def test_submit_while_another_submission_runs(self, client, ouvidoria_client, upstash_client):
        composition_id = _reviewed(client)
        upstash_client.data[f'composition:{composition_id}:submitting'] = '1'

        response = _post(client, composition_id, 'submit')

        assert response.status_code == 409
        assert json.loads(response.data)['detail'] == 'This manifestation is already being submitted'
        ouvidoria_client.create_draft.assert_not_called()
        assert json.loads(client.get(f'/api/manifestations/{composition_id}').data)['step'] == 'review'

    def test_submission_claim_is_released(self, client, ouvidoria_client, upstash_client):
        composition_id = _reviewed(client)
        ouvidoria_client.submit.side_effect = OuvidoriaAPIError('submit', 503)

        assert _post(client, composition_id, 'submit').status_code == 502
        assert f'composition:{composition_id}:submitting' not in upstash_client.data

        ouvidoria_client.submit.side_effect = None
        assert _post(client, composition_id, 'submit').status_code == 201
        assert f'composition:{composition_id}:submitting' not in upstash_client.data

    def test_submit_before_review(self, client, ouvidoria_client):
        composition_id = _create(client, content=CLEAN_TEXT)['id']

        response = _post(client, composition_id, 'submit')

        assert response.status_code == 409
        ouvidoria_client.create_draft.assert_not_called()

    def test_upstream_failure(self, client, ouvidoria_client):
        ouvidoria_client.create_draft.side_effect = OuvidoriaAPIError("create_draft", 500, "boom")
        composition_id = _reviewed(client)

        response = _post(client, composition_id, 'submit')

        data = json.loads(response.data)
        assert response.status_code == 502
        assert data['type'].endswith('/upstream-service-error')

        stored = json.loads(client.get(f'/api/manifestations/{composition_id}').data)
        assert stored['step'] == 'review'

    def test_missing_staged_file(self, client, staging, ouvidoria_client):
        composition_id = _create(client, content=CLEAN_TEXT)['id']
        _upload(client, composition_id, b'voice', 'a.ogg', 'audio/ogg')
        _post(client, composition_id, 'review')
        _post(client, composition_id, 'identity', {'mode': 'anonymous'})
        _post(client, composition_id, 'confirm-anonymous')
        staging.delete_composition(composition_id)

        response = _post(client, composition_id, 'submit')

        assert response.status_code == 409
        ouvidoria_client.create_draft.assert_not_called()
        ouvidoria_client.add_attachments.assert_not_called()

    def test_rate_limit(self, app, client):
        app.config['SUBMISSION_RATE_LIMIT'] = 1
        first = _reviewed(client)
        second = _reviewed(client)

        assert _post(client, first, 'submit').status_code == 201
        response = _post(client, second, 'submit')

        assert response.status_code == 429
        assert 'Retry-After' in response.headers


class TestIntakeEndpoints:
    """Test screening and recording profile."""

    def test_screening(self, client):
        response = client.post('/api/screening', json={'text': 'CPF 123.456.789-09'})

        data = json.loads(response.data)
        assert response.status_code == 200
        assert data['has_sensitive_data'] is True
        assert data['labels'] == ['CPF']
        assert data['masked_text'] == 'CPF ' + '*' * 14

    def test_screening_requires_text(self, client):
        response = client.post('/api/screening', json={})

        assert response.status_code == 400

    def test_recording_profile(self, client):
        response = client.get('/api/media/recording-profile', query_string=[
            ('kind', 'video'),
            ('supported', 'video/webm'),
            ('supported', 'video/webm;codecs=vp8,opus'),
        ])

        data = json.loads(response.data)
        assert data['mime_type'] == 'video/webm;codecs=vp8,opus'
        assert data['max_bytes'] == 1024 * 1024
        assert data['candidates'][0] == 'video/webm;codecs=vp9,opus'

    def test_recording_profile_unknown_kind(self, client):
        response = client.get('/api/media/recording-profile?kind=image')

        assert response.status_code == 400
