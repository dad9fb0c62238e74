"""
Create (or look up) a user and print an access token for it.

    python -m scripts.create_user someone@example.com "Full Name"
"""
import sys

from resume_optimizer.database import SessionLocal, init_db
from resume_optimizer.models.user import User
from resume_optimizer.services import auth as auth_service


def create_user(email: str, full_name: str = None) -> str:
    init_db()
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            user = User(email=email, full_name=full_name, is_active=True)
            db.add(user)
            db.commit()
            db.refresh(user)
            print(f"Created user {email} (id={user.id})")
        else:
            print(f"User {email} already exists (id={user.id})")
        return auth_service.create_access_token(data={"sub": user.email, "type": "access"})
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: python -m scripts.create_user <email> [full name]")
        sys.exit(1)
    token = create_user(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)
    print(f"Access token:\n{token}")
