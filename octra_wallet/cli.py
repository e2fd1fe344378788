#!/usr/bin/env python3
import argparse
import asyncio
import logging
import os
import sys
import time

from . import __version__
from .batch import Recipient, parse_recipients
from .config import DEFAULT_RPC, load_wallet, save_wallet
from .errors import WalletError
from .keys import KeyMaterial
from .rpc import RpcClient
from .tx import fee_micro, format_amount, parse_amount
from .wallet import Wallet

c = {'r': '\033[0m', 'c': '\033[36m', 'g': '\033[32m', 'y': '\033[33m', 'R': '\033[31m', 'B': '\033[1m', 'w': '\033[37m'}
spinner_frames = ['⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏']


def out(t, cl=''):
    print(f"{cl}{t}{c['r']}")


def fail(err):
    out(f"✗ error: {err}", c['R'])
    return 1


async def spin_animation(msg):
    i = 0
    try:
        while True:
            print(f"\r{c['c']}{spinner_frames[i]} {msg}{c['r']}", end='', flush=True)
            i = (i + 1) % len(spinner_frames)
            await asyncio.sleep(0.1)
    except asyncio.CancelledError:
        print("\r" + " " * (len(msg) + 3) + "\r", end='', flush=True)
        raise


async def spinning(msg, coro):
    if not sys.stdout.isatty():
        return await coro
    spin_task = asyncio.create_task(spin_animation(msg))
    try:
        return await coro
    finally:
        spin_task.cancel()
        try:
            await spin_task
        except asyncio.CancelledError:
            pass


def confirm(prompt, yes):
    if yes:
        return True
    return input(f"{c['B']}{c['y']}{prompt} [y/n]: {c['r']}").strip().lower() == 'y'


async def cmd_info(w, a):
    ok, bal = await spinning("loading", w.balance())
    if not ok:
        return fail(bal)
    nok, n = await w.next_nonce()
    out(f"address:   {w.address}", c['w'])
    out(f"balance:   {bal.balance:.6f} oct", c['B'] + c['g'])
    out(f"nonce:     {n - 1 if nok else '---'}", c['w'])
    out(f"public:    {w.key.public_key_b64}", c['w'])
    eok, enc = await w.encrypted_balance()
    if eok:
        out(f"encrypted: {enc.encrypted:.6f} oct", c['B'] + c['y'])
    return 0


async def cmd_send(w, a):
    amt = parse_amount(a.amount)
    ok, to = await spinning("resolving recipient", w.resolve(a.to))
    if not ok:
        return fail(to)
    out(f"send {format_amount(amt)} oct", c['B'] + c['g'])
    out(f"to:  {a.to}" + (f" ({to})" if to != a.to else ""), c['g'])
    if a.message:
        out(f"msg: {a.message[:50]}{'...' if len(a.message) > 50 else ''}", c['c'])
    out(f"fee: {format_amount(fee_micro(amt))} oct", c['y'])
    if not confirm("send?", a.yes):
        return 0
    t0 = time.time()
    ok, hs = await spinning("sending transaction", w.send(to, amt, a.message))
    if not ok:
        return fail(hs)
    out("✓ transaction accepted!", c['g'])
    out(f"hash: {hs}", c['g'])
    out(f"time: {time.time() - t0:.2f}s", c['w'])
    return 0


async def cmd_multi(w, a):
    with open(a.file) as f:
        lines = parse_recipients(f.read(), a.same_amount)
    bad = [p for p in lines if not p.valid]
    for p in bad:
        out(f"line {p.line}: {p.address[:20]} {p.error}", c['R'])
    rcp = [Recipient(p.address, p.amount) for p in lines if p.valid]
    if not rcp:
        return fail("no valid recipients")
    tot = sum(r.amount for r in rcp)
    out(f"total: {format_amount(tot)} oct to {len(rcp)} addresses", c['B'] + c['y'])
    if not confirm("send all?", a.yes):
        return 0
    ok, results = await spinning("sending transactions", w.multi_send(rcp))
    if not ok:
        return fail(results)
    for r in results:
        if r.success:
            out(f"✓ [{r.nonce}] {format_amount(r.amount)} to {r.recipient[:20]}... {r.hash}", c['g'])
        else:
            out(f"✗ [{r.nonce}] {format_amount(r.amount)} to {r.recipient[:20]}... {r.error}", c['R'])
    s_total = sum(1 for r in results if r.success)
    out(f"completed: {s_total} success, {len(results) - s_total} failed", c['B'])
    return 0 if s_total == len(results) else 2


async def cmd_encrypt(w, a):
    amt = parse_amount(a.amount)
    if not confirm(f"encrypt {format_amount(amt)} oct?", a.yes):
        return 0
    ok, r = await spinning("encrypting balance", w.encrypt_balance(amt))
    if not ok:
        return fail(r)
    out("✓ encryption submitted!", c['g'])
    out(f"tx hash: {r}", c['g'])
    out("will process in next epoch", c['g'])
    return 0


async def cmd_decrypt(w, a):
    amt = parse_amount(a.amount)
    if not confirm(f"decrypt {format_amount(amt)} oct?", a.yes):
        return 0
    ok, r = await spinning("decrypting balance", w.decrypt_balance(amt))
    if not ok:
        return fail(r)
    out("✓ decryption submitted!", c['g'])
    out(f"tx hash: {r}", c['g'])
    out("will process in next epoch", c['g'])
    return 0


async def cmd_private(w, a):
    amt = parse_amount(a.amount)
    ok, to = await spinning("resolving recipient", w.resolve(a.to))
    if not ok:
        return fail(to)
    out(f"send {format_amount(amt)} oct privately to", c['B'])
    out(to if to == a.to else f"{a.to} ({to})", c['y'])
    if not confirm("send?", a.yes):
        return 0
    ok, r = await spinning("creating private transfer", w.private_transfer(to, amt))
    if not ok:
        return fail(r)
    out("✓ private transfer submitted!", c['g'])
    out(f"tx hash: {r.tx_hash}", c['g'])
    out("recipient can claim in next epoch", c['g'])
    out(f"ephemeral key: {r.ephemeral_key}", c['c'])
    return 0


async def cmd_claimable(w, a):
    ok, transfers = await spinning("loading pending transfers", w.claimable())
    if not ok:
        return fail(transfers)
    if not transfers:
        out("no pending transfers", c['y'])
        return 0
    out(f"found {len(transfers)} claimable transfers:", c['B'] + c['g'])
    out("FROM                     AMOUNT            EPOCH   ID", c['c'])
    for t in transfers:
        amount = f"{format_amount(t.amount)} OCT" if t.amount is not None else "[encrypted]"
        out(f"{t.sender[:20]}...  {amount:<16}  ep{t.epoch if t.epoch is not None else '?':<5} #{t.id}", c['w'])
    return 0


async def cmd_claim(w, a):
    ok, r = await spinning(f"claiming transfer #{a.id}", w.claim(a.id))
    if not ok:
        return fail(r)
    out(f"✓ claimed {r.amount or 'unknown'}!", c['g'])
    out("your encrypted balance has been updated", c['g'])
    return 0


async def cmd_history(w, a):
    ok, h = await spinning("loading history", w.history(a.limit))
    if not ok:
        return fail(h)
    if not h:
        out("no transactions yet", c['y'])
        return 0
    out("time      type  amount        address                                         status", c['c'])
    for tx in h:
        d = tx.direction(w.address)
        other = tx.to if d == 'out' else tx.from_
        status = "pen" if tx.status == "pending" else f"e{tx.epoch}"
        ts = time.strftime('%H:%M:%S', time.localtime(tx.timestamp))
        out(f"{ts}  {d:>3}  {format_amount(tx.amount):>12}  {other:<47} {status}",
            c['y'] if tx.status == "pending" else c['w'])
    return 0


async def cmd_export(w, a):
    fn = a.out or f"octra_wallet_{int(time.time())}.json"
    save_wallet(fn, w.key, w.rpc.base_url)
    out(f"saved to {fn}", c['g'])
    out("file contains private key - keep safe!", c['R'])
    return 0


async def cmd_new(a):
    km = KeyMaterial.generate(256 if a.words == 24 else 128)
    out(f"mnemonic: {km.mnemonic}", c['R'])
    out(f"address:  {km.address}", c['g'])
    if a.out:
        save_wallet(a.out, km, a.rpc or os.environ.get("OCTRA_RPC_URL", DEFAULT_RPC))
        out(f"saved to {a.out}", c['g'])
    return 0


COMMANDS = {
    'info': cmd_info, 'send': cmd_send, 'multi': cmd_multi,
    'encrypt': cmd_encrypt, 'decrypt': cmd_decrypt, 'private': cmd_private,
    'claimable': cmd_claimable, 'claim': cmd_claim, 'history': cmd_history,
    'export': cmd_export,
}


def create_parser():
    p = argparse.ArgumentParser(prog="octra-wallet", description="octra wallet client")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--wallet", help="wallet.json path")
    p.add_argument("--rpc", help="rpc url override")
    p.add_argument("--log-level", default=os.environ.get("OCTRA_LOG_LEVEL", "WARNING"))
    p.add_argument("-y", "--yes", action="store_true", help="skip confirmation")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("info")
    s = sub.add_parser("send")
    s.add_argument("to")
    s.add_argument("amount")
    s.add_argument("-m", "--message")
    s = sub.add_parser("multi", help="send to every `address amount` line of a file")
    s.add_argument("file")
    s.add_argument("--same-amount")
    for name in ("encrypt", "decrypt"):
        sub.add_parser(name).add_argument("amount")
    s = sub.add_parser("private")
    s.add_argument("to")
    s.add_argument("amount")
    sub.add_parser("claimable")
    sub.add_parser("claim").add_argument("id")
    sub.add_parser("history").add_argument("--limit", type=int, default=20)
    sub.add_parser("export").add_argument("--out")
    s = sub.add_parser("new", help="generate a wallet")
    s.add_argument("--words", type=int, choices=(12, 24), default=12)
    s.add_argument("--out")
    return p


async def main(argv=None):
    a = create_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, a.log_level.upper(), logging.WARNING),
                        format="%(levelname)s %(name)s: %(message)s")
    if a.cmd == "new":
        return await cmd_new(a)

    try:
        cfg = load_wallet(a.wallet)
        key = cfg.key()
    except WalletError as e:
        out(f"[!] wallet.json error: {e}", c['R'])
        return 1
    if cfg.insecure:
        out("⚠️  WARNING: Using insecure HTTP connection!", c['R'])

    async with Wallet(key, RpcClient(a.rpc or cfg.rpc, cfg.timeout)) as w:
        try:
            return await COMMANDS[a.cmd](w, a)
        except (WalletError, OSError) as e:
            return fail(e)
        finally:
            key.wipe()


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print(c['r'])
        sys.exit(130)


if __name__ == "__main__":
    run()
