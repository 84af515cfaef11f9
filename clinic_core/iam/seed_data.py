# clinic_core/iam/seed_data.py
"""
Default permission catalog, system roles and the legacy (pre-RBAC)
role -> flat permission table.

Plain data only: seeding lives in clinic_core.iam.services.seeding.
"""
from __future__ import annotations

# (name, display_name, description, module, sub_module, action, level)
_PERMISSION_ROWS = [
    # Users
    ("users.view", "View Users", "View user list and profiles", "user_management", "", "view", "view"),
    ("users.create", "Create Users", "Create new user accounts", "user_management", "", "create", "create"),
    ("users.edit", "Edit Users", "Edit user information and profiles", "user_management", "", "edit", "edit"),
    ("users.delete", "Delete Users", "Delete user accounts", "user_management", "", "delete", "delete"),
    ("users.activate_deactivate", "Activate/Deactivate Users", "Activate or deactivate user accounts", "user_management", "", "activate", "edit"),
    ("users.assign_roles", "Assign Roles", "Assign roles to users", "user_management", "", "assign", "edit"),
    ("users.manage_permissions", "Manage User Permissions", "Grant or revoke individual permissions", "user_management", "", "manage_permissions", "full"),
    ("users.export", "Export User Data", "Export user information", "user_management", "", "export", "view"),
    # Clinics
    ("clinics.view", "View Clinic Details", "View clinic information", "clinic_management", "", "view", "view"),
    ("clinics.create", "Create Clinics", "Create new clinics", "clinic_management", "", "create", "create"),
    ("clinics.edit", "Edit Clinic Info", "Edit clinic information", "clinic_management", "", "edit", "edit"),
    ("clinics.delete", "Delete Clinics", "Delete clinic records", "clinic_management", "", "delete", "delete"),
    ("clinics.settings", "Manage Clinic Settings", "Configure clinic settings", "clinic_management", "", "manage_permissions", "full"),
    ("clinics.switch_clinic", "Switch Between Clinics", "Switch between different clinics", "clinic_management", "", "switch_clinic", "view"),
    # Patients
    ("patients.view", "View Patients", "View patient list and information", "patient_management", "", "view", "view"),
    ("patients.create", "Register Patients", "Register new patients", "patient_management", "", "create", "create"),
    ("patients.edit", "Edit Patient Info", "Edit patient information", "patient_management", "", "edit", "edit"),
    ("patients.delete", "Delete Patients", "Delete patient records", "patient_management", "", "delete", "delete"),
    ("patients.export", "Export Patient Data", "Export patient information", "patient_management", "", "export", "view"),
    ("patients.import", "Import Patient Data", "Import patient information", "patient_management", "", "import", "create"),
    # Appointments
    ("appointments.view", "View Appointments", "View appointment schedules", "appointment_management", "", "view", "view"),
    ("appointments.create", "Schedule Appointments", "Create new appointments", "appointment_management", "", "create", "create"),
    ("appointments.edit", "Modify Appointments", "Edit existing appointments", "appointment_management", "", "edit", "edit"),
    ("appointments.delete", "Cancel Appointments", "Cancel or delete appointments", "appointment_management", "", "delete", "delete"),
    ("appointments.reschedule", "Reschedule Appointments", "Reschedule existing appointments", "appointment_management", "", "reschedule", "edit"),
    ("appointments.assign", "Assign Staff", "Assign doctors/nurses to appointments", "appointment_management", "", "assign", "edit"),
    ("appointments.export", "Export Appointments", "Export appointment data", "appointment_management", "", "export", "view"),
    # Finance
    ("invoices.view", "View Invoices", "View invoice records", "financial_management", "invoices", "view", "view"),
    ("invoices.create", "Create Invoices", "Create new invoices", "financial_management", "invoices", "create", "create"),
    ("invoices.edit", "Edit Invoices", "Edit existing invoices", "financial_management", "invoices", "edit", "edit"),
    ("invoices.delete", "Delete Invoices", "Delete invoice records", "financial_management", "invoices", "delete", "delete"),
    ("invoices.send", "Send Invoices", "Send invoices to patients", "financial_management", "invoices", "send", "edit"),
    ("invoices.print", "Print Invoices", "Print invoice documents", "financial_management", "invoices", "print", "view"),
    ("payments.view", "View Payments", "View payment records", "financial_management", "payments", "view", "view"),
    ("payments.process", "Process Payments", "Process patient payments", "financial_management", "payments", "process", "create"),
    ("payments.refund", "Process Refunds", "Process payment refunds", "financial_management", "payments", "refund", "edit"),
    ("expenses.view", "View Expenses", "View expense records", "financial_management", "expenses", "view", "view"),
    ("expenses.create", "Add Expenses", "Add new expense records", "financial_management", "expenses", "create", "create"),
    ("expenses.edit", "Edit Expenses", "Edit expense records", "financial_management", "expenses", "edit", "edit"),
    ("expenses.delete", "Delete Expenses", "Delete expense records", "financial_management", "expenses", "delete", "delete"),
    ("expenses.approve", "Approve Expenses", "Approve expense claims", "financial_management", "expenses", "approve", "edit"),
    ("payroll.view", "View Payroll", "View payroll records", "financial_management", "payroll", "view", "view"),
    ("payroll.create", "Create Payroll", "Create payroll entries", "financial_management", "payroll", "create", "create"),
    ("payroll.edit", "Edit Payroll", "Edit payroll records", "financial_management", "payroll", "edit", "edit"),
    ("payroll.process", "Process Payroll", "Process employee payroll", "financial_management", "payroll", "process", "edit"),
    # Inventory
    ("inventory.view", "View Inventory", "View inventory items", "inventory_management", "", "view", "view"),
    ("inventory.create", "Add Inventory Items", "Add new inventory items", "inventory_management", "", "create", "create"),
    ("inventory.edit", "Edit Inventory", "Edit inventory items", "inventory_management", "", "edit", "edit"),
    ("inventory.delete", "Delete Inventory Items", "Delete inventory items", "inventory_management", "", "delete", "delete"),
    ("inventory.stock_update", "Update Stock", "Update stock levels", "inventory_management", "", "edit", "edit"),
    # Lab
    ("tests.view", "View Tests", "View test catalog", "lab_management", "tests", "view", "view"),
    ("tests.create", "Create Tests", "Create new test definitions", "lab_management", "tests", "create", "create"),
    ("tests.edit", "Edit Tests", "Edit test definitions", "lab_management", "tests", "edit", "edit"),
    ("tests.delete", "Delete Tests", "Delete test definitions", "lab_management", "tests", "delete", "delete"),
    ("test_reports.view", "View Test Reports", "View test results and reports", "lab_management", "test_reports", "view", "view"),
    ("test_reports.create", "Create Test Reports", "Create new test reports", "lab_management", "test_reports", "create", "create"),
    ("test_reports.edit", "Edit Test Reports", "Edit test reports", "lab_management", "test_reports", "edit", "edit"),
    ("test_reports.verify", "Verify Test Reports", "Verify and approve test reports", "lab_management", "test_reports", "verify", "edit"),
    ("lab_vendors.view", "View Lab Vendors", "View lab vendor information", "lab_management", "lab_vendors", "view", "view"),
    ("lab_vendors.create", "Add Lab Vendors", "Add new lab vendors", "lab_management", "lab_vendors", "create", "create"),
    ("lab_vendors.edit", "Edit Lab Vendors", "Edit lab vendor details", "lab_management", "lab_vendors", "edit", "edit"),
    ("lab_vendors.delete", "Delete Lab Vendors", "Delete lab vendor records", "lab_management", "lab_vendors", "delete", "delete"),
    # Departments / services
    ("departments.view", "View Departments", "View department information", "department_management", "", "view", "view"),
    ("departments.create", "Create Departments", "Create new departments", "department_management", "", "create", "create"),
    ("departments.edit", "Edit Departments", "Edit department details", "department_management", "", "edit", "edit"),
    ("departments.delete", "Delete Departments", "Delete department records", "department_management", "", "delete", "delete"),
    ("services.view", "View Services", "View service catalog", "service_management", "", "view", "view"),
    ("services.create", "Create Services", "Create new services", "service_management", "", "create", "create"),
    ("services.edit", "Edit Services", "Edit service details", "service_management", "", "edit", "edit"),
    ("services.delete", "Delete Services", "Delete service records", "service_management", "", "delete", "delete"),
    # Prescriptions
    ("prescriptions.view", "View Prescriptions", "View prescription records", "prescription_management", "", "view", "view"),
    ("prescriptions.create", "Create Prescriptions", "Create new prescriptions", "prescription_management", "", "create", "create"),
    ("prescriptions.edit", "Edit Prescriptions", "Edit prescription details", "prescription_management", "", "edit", "edit"),
    ("prescriptions.delete", "Delete Prescriptions", "Delete prescription records", "prescription_management", "", "delete", "delete"),
    ("prescriptions.print", "Print Prescriptions", "Print prescription documents", "prescription_management", "", "print", "view"),
    ("prescriptions.dispense", "Mark as Dispensed", "Mark prescriptions as dispensed", "prescription_management", "", "dispense", "edit"),
    # Leads
    ("leads.view", "View Leads", "View lead information", "lead_management", "", "view", "view"),
    ("leads.create", "Create Leads", "Create new leads", "lead_management", "", "create", "create"),
    ("leads.edit", "Edit Leads", "Edit lead details", "lead_management", "", "edit", "edit"),
    ("leads.delete", "Delete Leads", "Delete lead records", "lead_management", "", "delete", "delete"),
    ("leads.convert", "Convert Leads", "Convert leads to patients", "lead_management", "", "convert", "create"),
    # Training
    ("training.view", "View Training", "View training modules", "training_management", "", "view", "view"),
    ("training.create", "Create Training", "Create training content", "training_management", "", "create", "create"),
    ("training.edit", "Edit Training", "Edit training modules", "training_management", "", "edit", "edit"),
    ("training.assign", "Assign Training", "Assign training to users", "training_management", "", "assign", "edit"),
    # Dental
    ("odontogram.view", "View Dental Charts", "View dental charts and odontograms", "dental_management", "", "view", "view"),
    ("odontogram.create", "Create Dental Charts", "Create new dental charts", "dental_management", "", "create", "create"),
    ("odontogram.edit", "Edit Dental Charts", "Edit dental charts and treatments", "dental_management", "", "edit", "edit"),
    ("xray_analysis.view", "View X-ray Analysis", "View X-ray analysis results", "dental_management", "xray_analysis", "view", "view"),
    ("xray_analysis.create", "Perform X-ray Analysis", "Perform AI-powered X-ray analysis", "dental_management", "xray_analysis", "ai_analysis", "create"),
    # Analytics
    ("analytics.dashboard", "View Dashboard", "View analytics dashboard", "analytics_reports", "", "view", "view"),
    ("analytics.reports", "Generate Reports", "Generate and view reports", "analytics_reports", "", "view", "view"),
    ("analytics.export", "Export Analytics", "Export analytics data", "analytics_reports", "", "export", "view"),
    # Settings
    ("settings.view", "View Settings", "View system settings", "settings", "", "view", "view"),
    ("settings.general", "Manage General Settings", "Configure general system settings", "settings", "", "edit", "edit"),
    ("settings.notifications", "Manage Notifications", "Configure notification settings", "settings", "", "edit", "edit"),
    ("settings.integrations", "Manage Integrations", "Configure third-party integrations", "settings", "", "edit", "edit"),
    ("settings.backup", "Backup Management", "Manage system backups", "settings", "", "backup", "full"),
    # Permission system
    ("permissions.view", "View Permissions", "View all permissions and roles", "permissions_management", "", "view", "view"),
    ("permissions.create_role", "Create Roles", "Create custom roles", "permissions_management", "", "create", "create"),
    ("permissions.edit_role", "Edit Roles", "Edit role permissions", "permissions_management", "", "edit", "edit"),
    ("permissions.delete_role", "Delete Roles", "Delete custom roles", "permissions_management", "", "delete", "delete"),
    ("permissions.assign_permissions", "Assign Permissions", "Assign permissions to roles", "permissions_management", "", "assign", "edit"),
    ("permissions.assign_roles", "Assign Roles to Users", "Assign roles to users", "permissions_management", "", "assign", "edit"),
    ("permissions.audit_log", "View Permission Audit Log", "View permission change history", "permissions_management", "", "view", "view"),
]

# Grant-time constraints. Every seeded system role satisfies these.
PERMISSION_DEPENDENCIES: dict[str, list[str]] = {
    "payments.refund": ["payments.view", "payments.process"],
    "expenses.approve": ["expenses.view"],
    "payroll.process": ["payroll.view"],
    "test_reports.verify": ["test_reports.view"],
    "users.manage_permissions": ["users.view"],
    "permissions.assign_permissions": ["permissions.view"],
    "permissions.edit_role": ["permissions.view"],
}

DEFAULT_PERMISSIONS: list[dict] = [
    {
        "name": name,
        "display_name": display_name,
        "description": description,
        "module": module,
        "sub_module": sub_module,
        "action": action,
        "level": level,
        "depends_on": PERMISSION_DEPENDENCIES.get(name, []),
        "conflicts_with": [],
    }
    for (name, display_name, description, module, sub_module, action, level) in _PERMISSION_ROWS
]

ALL_PERMISSION_NAMES = [row[0] for row in _PERMISSION_ROWS]


DEFAULT_ROLES: list[dict] = [
    {
        "name": "admin",
        "display_name": "Administrator",
        "description": "Full system access with all permissions",
        "color": "#dc2626",
        "icon": "crown",
        "priority": 100,
        "can_be_modified": False,
        "permissions": ALL_PERMISSION_NAMES,
    },
    {
        "name": "doctor",
        "display_name": "Doctor",
        "description": "Medical practitioner with patient care permissions",
        "color": "#2563eb",
        "icon": "stethoscope",
        "priority": 90,
        "can_be_modified": True,
        "permissions": [
            "patients.view", "patients.create", "patients.edit",
            "appointments.view", "appointments.create", "appointments.edit", "appointments.reschedule",
            "prescriptions.view", "prescriptions.create", "prescriptions.edit", "prescriptions.print",
            "prescriptions.dispense",
            "test_reports.view", "test_reports.create", "test_reports.edit", "test_reports.verify",
            "tests.view",
            "services.view",
            "departments.view",
            "odontogram.view", "odontogram.create", "odontogram.edit",
            "xray_analysis.view", "xray_analysis.create",
            "analytics.dashboard", "analytics.reports",
            "training.view",
        ],
    },
    {
        "name": "nurse",
        "display_name": "Nurse",
        "description": "Nursing staff with patient care and administrative permissions",
        "color": "#059669",
        "icon": "heart",
        "priority": 80,
        "can_be_modified": True,
        "permissions": [
            "patients.view", "patients.create", "patients.edit", "patients.export",
            "appointments.view", "appointments.create", "appointments.edit", "appointments.reschedule",
            "appointments.assign", "appointments.export",
            "prescriptions.view", "prescriptions.create", "prescriptions.edit", "prescriptions.print",
            "prescriptions.dispense",
            "test_reports.view", "test_reports.create", "test_reports.edit", "test_reports.verify",
            "tests.view", "tests.create", "tests.edit",
            "odontogram.view", "odontogram.create", "odontogram.edit",
            "xray_analysis.view", "xray_analysis.create",
            "inventory.view", "inventory.create", "inventory.edit", "inventory.stock_update",
            "services.view", "services.create", "services.edit",
            "departments.view",
            "lab_vendors.view",
            "invoices.view", "payments.view", "expenses.view", "payroll.view",
            "leads.view", "leads.create", "leads.edit", "leads.convert",
            "analytics.dashboard", "analytics.reports", "analytics.export",
            "clinics.view", "clinics.switch_clinic",
            "training.view",
        ],
    },
    {
        "name": "receptionist",
        "display_name": "Receptionist",
        "description": "Front desk staff with patient and appointment management",
        "color": "#7c3aed",
        "icon": "phone",
        "priority": 70,
        "can_be_modified": True,
        "permissions": [
            "patients.view", "patients.create", "patients.edit",
            "appointments.view", "appointments.create", "appointments.edit", "appointments.reschedule",
            "appointments.assign",
            "leads.view", "leads.create", "leads.edit", "leads.convert",
            "invoices.view", "invoices.create", "invoices.send", "invoices.print",
            "payments.view", "payments.process",
            "services.view",
            "departments.view",
            "training.view",
        ],
    },
    {
        "name": "accountant",
        "display_name": "Accountant",
        "description": "Financial management and reporting specialist",
        "color": "#ea580c",
        "icon": "calculator",
        "priority": 75,
        "can_be_modified": True,
        "permissions": [
            "patients.view",
            "appointments.view",
            "invoices.view", "invoices.create", "invoices.edit", "invoices.delete", "invoices.send",
            "invoices.print",
            "payments.view", "payments.process", "payments.refund",
            "expenses.view", "expenses.create", "expenses.edit", "expenses.delete", "expenses.approve",
            "payroll.view", "payroll.create", "payroll.edit", "payroll.process",
            "services.view",
            "analytics.dashboard", "analytics.reports", "analytics.export",
            "training.view",
        ],
    },
    {
        "name": "staff",
        "display_name": "Staff",
        "description": "General staff member with limited access",
        "color": "#6b7280",
        "icon": "user",
        "priority": 60,
        "can_be_modified": True,
        "permissions": [
            "patients.view",
            "appointments.view",
            "services.view",
            "departments.view",
            "training.view",
        ],
    },
]

# Styling for roles created through create_custom_role
CUSTOM_ROLE_DEFAULTS = {
    "color": "#6366f1",
    "icon": "user-group",
    "priority": 50,
}


# Pre-RBAC memberships carried one role string and a flat permission list
# in this vocabulary. A new legacy membership without explicit permissions
# is seeded from here on first save.
_LEGACY_READ = [
    "read_patients", "read_appointments", "read_medical_records",
    "read_prescriptions", "read_invoices", "read_payments",
]

LEGACY_ROLE_PERMISSIONS: dict[str, list[str]] = {
    "admin": [
        "read_patients", "write_patients", "delete_patients",
        "read_appointments", "write_appointments", "delete_appointments",
        "read_medical_records", "write_medical_records", "delete_medical_records",
        "read_prescriptions", "write_prescriptions", "delete_prescriptions",
        "read_invoices", "write_invoices", "delete_invoices",
        "read_payments", "write_payments", "delete_payments",
        "read_inventory", "write_inventory", "delete_inventory",
        "read_staff", "write_staff", "delete_staff",
        "read_reports", "write_reports",
        "manage_clinic_settings", "view_analytics",
        "manage_departments", "manage_services", "manage_tests",
        "view_payroll", "manage_payroll",
    ],
    "doctor": _LEGACY_READ + [
        "write_patients", "write_appointments", "write_medical_records",
        "write_prescriptions", "read_reports", "view_analytics",
    ],
    "nurse": _LEGACY_READ + [
        "write_patients", "write_appointments", "read_inventory", "write_inventory",
    ],
    "receptionist": _LEGACY_READ + [
        "write_patients", "write_appointments", "write_invoices", "write_payments",
    ],
    "accountant": _LEGACY_READ + [
        "write_invoices", "write_payments", "read_reports", "view_payroll", "manage_payroll",
    ],
    "staff": list(_LEGACY_READ),
}
