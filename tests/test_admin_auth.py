"""
Unit tests for AdminAuth: plaintext login, ephemeral sessions, validated password changes.
Run: python tests/test_admin_auth.py
"""

from fakes import temp_kv

from syndl.admin_auth import AdminAuth, PasswordChangeError


def assert_equal(actual, expected, msg):
	if actual != expected:
		raise AssertionError(f"{msg} | expected={expected}, actual={actual}")


def assert_true(cond, msg):
	if not cond:
		raise AssertionError(msg)


def test_login_and_logout():
	auth = AdminAuth(temp_kv())
	assert_equal(auth.login('admin', 'wrong'), None, "bad password rejected")
	assert_equal(auth.login('root', 'syndl2025'), None, "bad username rejected")
	session_id = auth.login('admin', 'syndl2025')
	assert_true(auth.is_logged_in(session_id), "logged in with default credentials")
	assert_true(not auth.is_logged_in('someone-else'), "other sessions are not logged in")
	auth.logout(session_id)
	assert_true(not auth.is_logged_in(session_id), "logged out")


def test_sessions_do_not_survive_restart():
	kv = temp_kv()
	session_id = AdminAuth(kv).login('admin', 'syndl2025')
	assert_true(not AdminAuth(kv).is_logged_in(session_id), "logged-in flag is ephemeral")


def test_password_change_validation_writes_nothing_on_rejection():
	kv = temp_kv()
	auth = AdminAuth(kv)
	for new, confirm in (('abcdef', 'abcdeg'), ('abc', 'abc')):
		try:
			auth.change_password(new, confirm)
		except PasswordChangeError:
			continue
		raise AssertionError("invalid password change should be rejected")
	assert_equal(kv.get('syndl_admin_password'), None, "nothing stored")
	assert_true(auth.login('admin', 'syndl2025') is not None, "old password still works")


def test_password_change_persists():
	kv = temp_kv()
	AdminAuth(kv).change_password('newpass1', 'newpass1')
	reloaded = AdminAuth(kv)
	assert_equal(reloaded.login('admin', 'syndl2025'), None, "old password no longer accepted")
	assert_true(reloaded.login('admin', 'newpass1') is not None, "new password survives reload")


def main():
	print("Running AdminAuth tests...")
	test_login_and_logout()
	test_sessions_do_not_survive_restart()
	test_password_change_validation_writes_nothing_on_rejection()
	test_password_change_persists()
	print("All AdminAuth tests passed!")


if __name__ == '__main__':
	main()
