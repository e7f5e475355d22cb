"""
Records — ICD Catalogue Tests

Bulk import from CSV / JSON, the deletion guard, typeahead search and
catalogue-linked diagnoses.

@file records/tests/test_icd.py
"""

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from rest_framework import status

from core.exceptions import BusinessRuleViolation
from records.models import IcdCode, MedicalRecordDiagnosis
from records.services import IcdCodeService, MedicalRecordService
from tests.factories import IcdCodeFactory, MedicalRecordFactory

CHOLERA_CSV = (
    'code,name_id,name_en,chapter,parent_code\n'
    'A00,Kolera,Cholera,I,\n'
    'a00.0,Kolera klasik,Classical cholera,I,A00\n'
    ',Tanpa kode,,I,\n'
)


def upload(name, content, content_type='text/csv'):
    return SimpleUploadedFile(name, content.encode('utf-8'), content_type=content_type)


def import_file(name, content, icd_type=IcdCode.Type.ICD10):
    rows, first_line = IcdCodeService.read_rows(upload(name, content))
    return IcdCodeService.import_rows(rows=rows, icd_type=icd_type, first_line=first_line)


@pytest.mark.django_db
class TestImport:
    def test_csv(self):
        result = import_file('icd10.csv', CHOLERA_CSV)

        assert result['imported'] == 2
        assert result['skipped'] == 0
        assert result['errors'] == ['Row 4: code is required.']
        child = IcdCode.objects.get(code='A00.0')
        assert child.parent_code == 'A00'
        assert child.name_en == 'Classical cholera'
        assert child.is_active and child.is_bpjs_claimable

    def test_existing_codes_are_skipped(self):
        IcdCodeFactory(code='A00', name_id='Kolera (manual)')
        result = import_file('icd10.csv', CHOLERA_CSV)

        assert (result['imported'], result['skipped']) == (1, 1)
        assert IcdCode.objects.get(code='A00').name_id == 'Kolera (manual)'

    def test_same_code_under_other_type_is_imported(self):
        IcdCodeFactory(code='A00', type=IcdCode.Type.ICD9CM)
        result = import_file('icd10.csv', CHOLERA_CSV)
        assert result['imported'] == 2
        assert IcdCode.objects.filter(code='A00').count() == 2

    def test_json_with_name_fallback(self):
        result = import_file(
            'icd9.json',
            '[{"code": "01.0", "name": "Cranial puncture"}, {"code": "01.09", "name_en": "Other"}]',
            icd_type=IcdCode.Type.ICD9CM,
        )
        assert result['imported'] == 1
        assert result['errors'] == ['Row 2: name is required.']
        assert IcdCode.objects.get(code='01.0').name_id == 'Cranial puncture'

    def test_over_long_code_is_reported(self):
        result = import_file('icd10.csv', 'code,name\n' + 'X' * 25 + ',Too long\n')
        assert result['imported'] == 0
        assert result['errors'] == ['Row 2: code too long.']

    def test_error_list_is_capped(self):
        content = 'code,name\n' + ',nameless\n' * 15
        result = import_file('icd10.csv', content)
        assert result['error_count'] == 15
        assert len(result['errors']) == 10

    def test_json_must_be_a_list(self):
        with pytest.raises(BusinessRuleViolation):
            IcdCodeService.read_rows(upload('icd.json', '{"code": "A00"}', 'application/json'))

    def test_broken_json(self):
        with pytest.raises(BusinessRuleViolation):
            IcdCodeService.read_rows(upload('icd.json', '[{"code": ', 'application/json'))


@pytest.mark.django_db
class TestCatalogue:
    def test_delete_blocked_by_sub_codes(self):
        parent = IcdCodeFactory(code='A00')
        IcdCodeFactory(code='A00.0', parent_code='A00')
        with pytest.raises(BusinessRuleViolation):
            IcdCodeService.delete(icd=parent)
        assert IcdCode.objects.filter(pk=parent.pk).exists()

    def test_sub_codes_of_other_type_do_not_block(self):
        parent = IcdCodeFactory(code='A00')
        IcdCodeFactory(code='A00.0', parent_code='A00', type=IcdCode.Type.ICD9CM)
        IcdCodeService.delete(icd=parent)
        assert not IcdCode.objects.filter(pk=parent.pk).exists()

    def test_delete_blocked_by_diagnoses(self):
        icd = IcdCodeFactory()
        MedicalRecordService.update_record(record=MedicalRecordFactory(), diagnoses=[{'icd': icd}])
        with pytest.raises(BusinessRuleViolation):
            IcdCodeService.delete(icd=icd)

    def test_search_matches_code_and_names(self):
        IcdCodeFactory(code='J06.9', name_id='ISPA akut', name_en='Acute upper respiratory infection')
        IcdCodeFactory(code='J00', name_id='Nasofaringitis akut', is_active=False)
        IcdCodeFactory(code='96.04', name_id='Intubasi', type=IcdCode.Type.ICD9CM)

        assert [icd.code for icd in IcdCodeService.search(term='respiratory')] == ['J06.9']
        assert [icd.code for icd in IcdCodeService.search(term='j0')] == ['J06.9']
        assert [icd.code for icd in IcdCodeService.search(term='intub', icd_type='icd10')] == []

    def test_stats(self):
        IcdCodeFactory()
        IcdCodeFactory(is_active=False, is_bpjs_claimable=False)
        IcdCodeFactory(type=IcdCode.Type.ICD9CM)
        assert IcdCodeService.stats() == {
            'total': 3, 'active': 2, 'inactive': 1,
            'icd10_count': 2, 'icd9cm_count': 1, 'bpjs_claimable': 2,
        }

    def test_diagnosis_takes_code_and_name_from_catalogue(self):
        icd = IcdCodeFactory(code='A01.0', name_id='Demam tifoid')
        record = MedicalRecordService.update_record(
            record=MedicalRecordFactory(),
            diagnoses=[{'icd': icd, 'diagnosis_type': MedicalRecordDiagnosis.DiagnosisType.PRIMARY}],
        )
        diagnosis = record.diagnoses.get()
        assert (diagnosis.icd_id, diagnosis.icd_code, diagnosis.icd_name) == (icd.pk, 'A01.0', 'Demam tifoid')


@pytest.mark.django_db
class TestIcdCodeEndpoints:
    def test_import_csv(self, admin_client):
        response = admin_client.post(
            reverse('api-v1:records:icd-code-import'),
            {'file': upload('icd10.csv', CHOLERA_CSV), 'type': 'icd10'},
            format='multipart',
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()['data']
        assert (data['imported'], data['skipped'], data['error_count']) == (2, 0, 1)

    def test_import_rejects_spreadsheet(self, admin_client):
        response = admin_client.post(
            reverse('api-v1:records:icd-code-import'),
            {'file': upload('icd10.xlsx', 'PK'), 'type': 'icd10'},
            format='multipart',
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert not IcdCode.objects.exists()

    def test_import_needs_create_permission(self, authenticated_client, user, grant):
        grant(user, 'icd_codes.view')
        response = authenticated_client.post(
            reverse('api-v1:records:icd-code-import'),
            {'file': upload('icd10.csv', CHOLERA_CSV), 'type': 'icd10'},
            format='multipart',
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_search_with_view_permission(self, authenticated_client, user, grant):
        grant(user, 'icd_codes.view')
        IcdCodeFactory(code='K35', name_id='Apendisitis akut')
        response = authenticated_client.get(reverse('api-v1:records:icd-code-search'), {'q': 'apendi'})
        assert response.status_code == status.HTTP_200_OK
        assert response.json()['data'][0]['display'] == 'K35 - Apendisitis akut'

    def test_create_uppercases_and_fills_chapter_name(self, admin_client):
        response = admin_client.post(
            reverse('api-v1:records:icd-code-list'),
            {'code': 'k35.8', 'type': 'icd10', 'name_id': 'Apendisitis akut lainnya', 'chapter': 'XI'},
            format='json',
        )
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()['data']
        assert data['code'] == 'K35.8'
        assert data['chapter_name'] == 'Diseases of the digestive system (K00-K93)'

    def test_duplicate_code_is_422(self, admin_client):
        IcdCodeFactory(code='K35')
        response = admin_client.post(
            reverse('api-v1:records:icd-code-list'),
            {'code': 'K35', 'type': 'icd10', 'name_id': 'Duplikat'},
            format='json',
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_retrieve_counts_children(self, admin_client):
        parent = IcdCodeFactory(code='A00')
        IcdCodeFactory(code='A00.0', parent_code='A00')
        IcdCodeFactory(code='A00.1', parent_code='A00')
        response = admin_client.get(reverse('api-v1:records:icd-code-detail', kwargs={'pk': parent.pk}))
        assert response.json()['data']['children_count'] == 2

    def test_list_roots(self, admin_client):
        IcdCodeFactory(code='A00')
        IcdCodeFactory(code='A00.0', parent_code='A00')
        response = admin_client.get(reverse('api-v1:records:icd-code-list'), {'parent_code': 'root'})
        assert [row['code'] for row in response.json()['data']] == ['A00']

    def test_destroy_with_children_is_422(self, admin_client):
        parent = IcdCodeFactory(code='A00')
        IcdCodeFactory(code='A00.0', parent_code='A00')
        response = admin_client.delete(reverse('api-v1:records:icd-code-detail', kwargs={'pk': parent.pk}))
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_toggle_status(self, admin_client):
        icd = IcdCodeFactory()
        admin_client.post(reverse('api-v1:records:icd-code-toggle-status', kwargs={'pk': icd.pk}))
        icd.refresh_from_db()
        assert icd.is_active is False

    def test_chapters(self, admin_client):
        data = admin_client.get(reverse('api-v1:records:icd-code-chapters')).json()['data']
        assert len(data) == 22
        assert data[0] == {'value': 'I', 'label': 'Certain infectious and parasitic diseases (A00-B99)'}

    def test_record_diagnosis_by_catalogue_id(self, admin_client):
        icd = IcdCodeFactory(code='J06.9', name_id='ISPA akut')
        record = MedicalRecordFactory()
        response = admin_client.patch(
            reverse('api-v1:records:medical-record-detail', kwargs={'pk': record.pk}),
            {'diagnoses': [{'icd': str(icd.pk)}]},
            format='json',
        )
        assert response.status_code == status.HTTP_200_OK
        diagnosis = response.json()['data']['diagnoses'][0]
        assert (diagnosis['icd_code'], diagnosis['icd_name']) == ('J06.9', 'ISPA akut')
