"""AD Whois: HTTP facade over Active Directory group and user lookups."""
