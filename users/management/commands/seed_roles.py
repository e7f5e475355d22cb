"""
Users — Management Command: seed_roles

Populates the Permission table with every ``module.action`` pair and the
system roles of MediKlinik with their default permission sets.

Usage::

    python manage.py seed_roles

Idempotent: safe to re-run (uses update_or_create).

@file users/management/commands/seed_roles.py
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from users.models import Permission, Role

MODULES = {
    'users': 'Users',
    'roles': 'Roles',
    'departments': 'Departments',
    'services': 'Services',
    'doctor_schedules': 'Doctor Schedules',
    'patients': 'Patients',
    'queues': 'Queues',
    'medical_records': 'Medical Records',
    'prescriptions': 'Prescriptions',
    'icd_codes': 'ICD Codes',
    'billing': 'Billing',
    'pharmacy': 'Pharmacy',
    'inventory': 'Inventory',
    'purchasing': 'Purchasing',
    'reports': 'Reports',
    'clinic_settings': 'Clinic Settings',
}

ACTIONS = ['view', 'create', 'edit', 'delete', 'manage']


def _all_of(*modules):
    return [f'{m}.{a}' for m in modules for a in ACTIONS]


def _view_of(*modules):
    return [f'{m}.view' for m in modules]


SYSTEM_ROLES = [
    {
        'name': 'super_admin',
        'display_name': 'Super Admin',
        'description': 'Unrestricted access to every module',
        'color': 'red',
        'permissions': _all_of(*MODULES),
    },
    {
        'name': 'admin_klinik',
        'display_name': 'Admin Klinik',
        'description': 'Clinic administrator',
        'color': 'purple',
        'permissions': [p for p in _all_of(*MODULES) if not p.startswith('roles.')],
    },
    {
        'name': 'dokter',
        'display_name': 'Dokter',
        'description': 'Doctor: examinations and prescriptions',
        'color': 'blue',
        'permissions': (
            _view_of('patients', 'queues', 'departments', 'services', 'pharmacy')
            + _view_of('icd_codes', 'doctor_schedules')
            + _all_of('medical_records', 'prescriptions')
            + ['queues.edit']
        ),
    },
    {
        'name': 'perawat',
        'display_name': 'Perawat',
        'description': 'Nurse: vital signs and queue handling',
        'color': 'green',
        'permissions': (
            _view_of('patients', 'departments', 'services', 'medical_records')
            + ['queues.view', 'queues.edit', 'medical_records.edit']
        ),
    },
    {
        'name': 'kasir',
        'display_name': 'Kasir',
        'description': 'Cashier: invoices and payments',
        'color': 'yellow',
        'permissions': (
            _view_of('patients', 'medical_records', 'services', 'reports')
            + ['billing.view', 'billing.create', 'billing.edit']
        ),
    },
    {
        'name': 'apoteker',
        'display_name': 'Apoteker',
        'description': 'Pharmacist: stock, purchasing and dispensing',
        'color': 'teal',
        'permissions': (
            _all_of('pharmacy', 'inventory', 'purchasing')
            + ['prescriptions.view', 'prescriptions.edit', 'patients.view', 'reports.view']
        ),
    },
    {
        'name': 'pendaftaran',
        'display_name': 'Pendaftaran',
        'description': 'Front desk: patient registration and queue tickets',
        'color': 'gray',
        'permissions': (
            ['patients.view', 'patients.create', 'patients.edit']
            + ['queues.view', 'queues.create', 'queues.edit']
            + _view_of('departments', 'services', 'doctor_schedules')
        ),
    },
]


class Command(BaseCommand):
    help = 'Seed permissions and system-default RBAC roles.'

    @transaction.atomic
    def handle(self, *args, **options):
        perm_created = 0
        for module_index, (module, label) in enumerate(MODULES.items()):
            for action_index, action in enumerate(ACTIONS):
                _, created = Permission.objects.update_or_create(
                    name=f'{module}.{action}',
                    defaults={
                        'display_name': f'{action.title()} {label}',
                        'module': module,
                        'action': action,
                        'sort_order': module_index * 10 + action_index,
                    },
                )
                perm_created += int(created)

        role_created = 0
        for role_data in SYSTEM_ROLES:
            role, created = Role.objects.update_or_create(
                name=role_data['name'],
                defaults={
                    'display_name': role_data['display_name'],
                    'description': role_data['description'],
                    'color': role_data['color'],
                    'is_system': True,
                    'is_active': True,
                },
            )
            role.permissions.set(Permission.objects.filter(name__in=role_data['permissions']))
            if created:
                role_created += 1
                self.stdout.write(f'  Created role: {role.name}')
            else:
                self.stdout.write(f'  Updated role: {role.name}')

        self.stdout.write(self.style.SUCCESS(
            f'Done. {perm_created} new permissions, {role_created} new roles '
            f'({len(SYSTEM_ROLES) - role_created} updated).'
        ))
