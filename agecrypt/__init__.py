"""
git-agecrypt transparently encrypts files in a git repository with age.

Files are encrypted by a git clean filter when they are staged and decrypted
by a smudge filter when they are checked out, so the repository only ever
stores ciphertext while the working tree holds plaintext.

Set up the filter in a repository:

\b
    $ git-agecrypt init

Register an identity used to decrypt files (kept in the local git config):

\b
    $ git-agecrypt config add -i ~/.config/age/key.txt

Choose recipients for a file (kept in git-agecrypt.yaml, commit it):

\b
    $ git-agecrypt config add -r age1... -p secrets/token.txt
    $ echo "secrets/token.txt filter=git-agecrypt diff=git-agecrypt" >> .gitattributes
"""

__version__ = '0.1.0'
