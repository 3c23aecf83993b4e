import pytest

from hostwatch.credentials import (
    format_credentials,
    load_credentials_file,
    parse_credentials,
    parse_line,
)
from hostwatch.exceptions import CredentialFileError, CredentialParseError


class TestParseLine:
    def test_basic_line(self):
        cred = parse_line("server.example.com:22@admin:secret", 1)
        assert cred.host == "server.example.com"
        assert cred.port == 22
        assert cred.username == "admin"
        assert cred.password == "secret"

    def test_password_may_contain_colons(self):
        cred = parse_line("h:22@u:p:ss", 1)
        assert cred.username == "u"
        assert cred.password == "p:ss"

    def test_ipv6_host_splits_on_last_colon(self):
        cred = parse_line("2001:db8::1:22@u:p", 1)
        assert cred.host == "2001:db8::1"
        assert cred.port == 22

    def test_surrounding_whitespace_is_trimmed(self):
        cred = parse_line("   10.0.0.1:2222@ root : pw   ", 1)
        assert cred.host == "10.0.0.1"
        assert cred.username == "root"
        assert cred.password == "pw"

    @pytest.mark.parametrize("port", ["0", "65536", "99999999999"])
    def test_port_out_of_range(self, port):
        with pytest.raises(CredentialParseError) as exc_info:
            parse_line(f"h:{port}@u:p", 7)
        assert exc_info.value.line == 7
        assert "line 7" in str(exc_info.value)
        assert port in str(exc_info.value)

    def test_port_bounds_are_inclusive(self):
        assert parse_line("h:1@u:p", 1).port == 1
        assert parse_line("h:65535@u:p", 1).port == 65535

    @pytest.mark.parametrize(
        "line",
        [
            "no-separators-at-all",
            "host:22",  # no credentials
            "@u:p",  # no host:port
            "h:22@",  # nothing after @
            "h@u:p",  # no port
            "h:abc@u:p",  # non-numeric port
            "h:22@userpass",  # no password separator
            "h:22@:p",  # empty username
            "h:22@u:",  # empty password
            "h:22@ : ",  # whitespace-only credentials
            " :22@u:p",  # whitespace-only host
        ],
    )
    def test_malformed_lines(self, line):
        with pytest.raises(CredentialParseError) as exc_info:
            parse_line(line, 3)
        assert exc_info.value.line == 3
        assert "line 3" in str(exc_info.value)

    def test_error_message_names_expected_shape(self):
        with pytest.raises(CredentialParseError) as exc_info:
            parse_line("garbage", 1)
        assert "host:port@username:password" in str(exc_info.value)


class TestParseCredentials:
    def test_blank_lines_are_skipped(self, sample_text):
        creds = parse_credentials(sample_text)
        assert [c.host for c in creds] == [
            "web-01.example.com",
            "db-01.example.com",
            "down.example.com",
        ]

    def test_empty_input(self):
        assert parse_credentials("") == []
        assert parse_credentials("\n   \n\t\n") == []

    def test_line_numbers_count_blank_lines(self):
        text = "a:22@u:p\n\n\nbroken line\n"
        with pytest.raises(CredentialParseError) as exc_info:
            parse_credentials(text)
        assert exc_info.value.line == 4

    def test_first_error_wins(self):
        text = "a:22@u:p\nb:0@u:p\nc\n"
        with pytest.raises(CredentialParseError) as exc_info:
            parse_credentials(text)
        assert exc_info.value.line == 2

    def test_duplicates_are_kept(self):
        creds = parse_credentials("a:22@u:p\na:22@u:p")
        assert len(creds) == 2

    def test_windows_line_endings(self):
        creds = parse_credentials("a:22@u:p\r\nb:23@v:q\r\n")
        assert [(c.host, c.port, c.password) for c in creds] == [
            ("a", 22, "p"),
            ("b", 23, "q"),
        ]

    def test_format_parses_back(self, sample_text):
        creds = parse_credentials(sample_text)
        assert parse_credentials(format_credentials(creds)) == creds


class TestLoadCredentialsFile:
    def test_load_txt_file(self, credential_file):
        creds = load_credentials_file(credential_file)
        assert len(creds) == 3

    def test_suffix_is_case_insensitive(self, tmp_path):
        path = tmp_path / "HOSTS.TXT"
        path.write_text("a:22@u:p")
        assert len(load_credentials_file(path)) == 1

    def test_wrong_suffix_is_rejected(self, tmp_path):
        path = tmp_path / "hosts.csv"
        path.write_text("a:22@u:p")
        with pytest.raises(CredentialFileError, match="Please upload a .txt file"):
            load_credentials_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(CredentialFileError):
            load_credentials_file(tmp_path / "missing.txt")

    def test_parse_errors_propagate(self, tmp_path):
        path = tmp_path / "hosts.txt"
        path.write_text("a:22@u:p\nnope\n")
        with pytest.raises(CredentialParseError) as exc_info:
            load_credentials_file(path)
        assert exc_info.value.line == 2
