"""Describes the business-account approval domain. Centres around the `Company`.

Why is this hard?

- Decisions arrive through two doors: an admin console behind a session, and a
  signed link inside an email that anyone holding it can open.
- Links get opened more than once. Mail clients prefetch, admins double click.
- The decision has to stick even when the email telling the owner about it
  does not go out.

Only three states, and two of them are terminal.
"""
