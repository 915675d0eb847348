ROLE_STUDENT = "STUDENT"
ROLE_MENTOR = "MENTOR"
ROLE_ADMIN = "ADMIN"

ALL_ROLES = (ROLE_STUDENT, ROLE_MENTOR, ROLE_ADMIN)


def role_names(roles):
    names = []
    for role in roles or []:
        name = role if isinstance(role, str) else getattr(role, "name", None)
        if name in ALL_ROLES:
            names.append(name)
    return sorted(names)
