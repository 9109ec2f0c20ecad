"""
Create a user from the command line.

The API only lets admins create users, so the first admin is made here:

    python -m scripts.create_user admin "School Admin" admin
"""
import argparse
import asyncio

from database import get_db_context, init_db
from services.identity import create_user


async def main(args):
    await init_db()
    async with get_db_context() as db:
        user = await create_user(
            db=db,
            username=args.username,
            name=args.name,
            role=args.role,
            class_names=args.classes,
            subject=args.subject,
        )
    print("Created", user)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a School Grades user")
    parser.add_argument("username")
    parser.add_argument("name")
    parser.add_argument("role", choices=["admin", "teacher", "grade_leader"])
    parser.add_argument("--subject")
    parser.add_argument("--classes", nargs="*", default=[], help="Owned class labels")
    asyncio.run(main(parser.parse_args()))
