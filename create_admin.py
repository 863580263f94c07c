from supabase import create_client

from courierdesk.config import settings


def create_user(email: str, password: str, name: str, role: str = "admin"):
    supabase_admin = create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_KEY
    )

    # Create auth user
    auth_response = supabase_admin.auth.admin.create_user({
        "email": email,
        "password": password,
        "email_confirm": True
    })

    # Create the users row the service reads roles from
    profile_data = {
        "id": auth_response.user.id,
        "email": email,
        "name": name,
        "role": role,
    }

    supabase_admin.table("users").insert(profile_data).execute()
    print(f"{role.capitalize()} created: {email}")


if __name__ == "__main__":
    email = input("Email: ")
    password = input("Password: ")
    name = input("Name: ")
    role = input("Role [admin/courier] (admin): ").strip() or "admin"
    if role not in ("admin", "courier"):
        raise SystemExit(f"Unknown role: {role}")
    create_user(email, password, name, role)
