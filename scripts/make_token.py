import sys

from campusmart.core.security import create_access_token

if __name__ == "__main__":
    user_id = sys.argv[1] if len(sys.argv) > 1 else "u1"
    print(create_access_token({"sub": user_id}))
